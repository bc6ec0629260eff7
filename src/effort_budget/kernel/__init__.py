"""
Kernel - infrastructure shared by the domain modules

Ids, clock, errors, configuration, logging, metrics, retry and the
transactional SQLite database.
"""

from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import (
    AuthenticationRequired,
    EffortBudgetError,
    NotFoundError,
    ReferentialConflict,
    StoreError,
    TransientStoreFailure,
    ValidationFailed,
)
from effort_budget.kernel.ids import IdFactory, SequentialIdFactory, generate_id
from effort_budget.kernel.time import RealTimeProvider, TestTimeProvider, TimeProvider

__all__ = [
    # IDs
    "IdFactory",
    "SequentialIdFactory",
    "generate_id",
    # Time
    "TimeProvider",
    "RealTimeProvider",
    "TestTimeProvider",
    # Config
    "EstimationPolicy",
    # Errors
    "EffortBudgetError",
    "AuthenticationRequired",
    "NotFoundError",
    "ValidationFailed",
    "ReferentialConflict",
    "StoreError",
    "TransientStoreFailure",
]
