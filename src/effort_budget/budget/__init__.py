"""
Budget module - estimation, validation and tree reconciliation
"""

from effort_budget.budget.calculator import calculate_estimate
from effort_budget.budget.models import Activity, Budget, BudgetSummary, Client, Story
from effort_budget.budget.reconciler import ReconcileResult, ReconcileStats, diff_by_identity

__all__ = [
    "calculate_estimate",
    "diff_by_identity",
    "Activity",
    "Budget",
    "BudgetSummary",
    "Client",
    "ReconcileResult",
    "ReconcileStats",
    "Story",
]
