"""Setup script for the azboards package."""

from setuptools import find_packages, setup

setup(
    name="azboards",
    version="0.3.0",
    description="Terminal dashboard and CLI for Azure Boards work items",
    author="Azure Boards CLI Contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pyyaml>=6.0",
        "requests>=2.25.0",
        "rich>=13.0",
        "textual>=0.80",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "azb=azboards.cli:main",
            "azb-dashboard=azboards.dashboard.__main__:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console :: Curses",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
