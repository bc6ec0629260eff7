"""
Effort Budget - project effort and cost estimation

Budgets are trees of stories and activities with hour estimates and
complexity multipliers. The system derives hours, cost and schedule, and
keeps persisted trees in sync with edited ones in a single transaction.
"""

from effort_budget.service import EffortBudget

__version__ = "0.1.0"
__all__ = ["EffortBudget", "__version__"]
