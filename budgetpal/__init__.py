"""
BudgetPal - Source Package

Personal expense tracking: users sign up, log in, record categorized
expenses and view per-category analytics.

PRINCIPLES:
1. Every mutation is tied to an authenticated user
2. Every expense query is scoped to its owner
3. Store faults never reach the user raw
4. Every step is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "BudgetPal Team"
