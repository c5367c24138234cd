"""
Azure Boards CLI
Terminal dashboard and command line client for Azure DevOps work items
"""

__version__ = "0.3.0"
