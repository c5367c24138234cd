"""Azure Boards terminal dashboard.

Launch with: azb dashboard  (or python -m azboards.dashboard)
"""
