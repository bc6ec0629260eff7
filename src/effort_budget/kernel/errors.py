"""
Custom exceptions for Effort Budget

Every failure the system can surface maps onto one branch of this
hierarchy, so callers (CLI, HTTP adapters) can decide between a precise
message and a generic "internal error" by class alone.

Fun fact: HTTP 404 is older than most of the web - it was defined in 1992,
the same year the first website went online. Our NotFound branch keeps the tradition.
"""


class EffortBudgetError(Exception):
    """Base exception for all Effort Budget errors"""

    pass


class AuthenticationRequired(EffortBudgetError):
    """Raised when an operation is invoked without an authenticated user"""

    def __init__(self, message: str = "") -> None:
        super().__init__(message or "Authentication required")


# Not found


class NotFoundError(EffortBudgetError):
    """Base class for missing or inaccessible records"""

    pass


class BudgetNotFound(NotFoundError):
    """
    Raised when budget does not exist or is not owned by the requester

    Both cases produce the same error so that callers cannot discover
    other users' budgets.
    """

    def __init__(self, budget_id: str) -> None:
        self.budget_id = budget_id
        super().__init__(f"Budget {budget_id} not found")


class ClientNotFound(NotFoundError):
    """Raised when client does not exist"""

    def __init__(self, client_id: str) -> None:
        self.client_id = client_id
        super().__init__(f"Client {client_id} not found")


# Validation


class ValidationFailed(EffortBudgetError):
    """
    Raised when input is missing or malformed

    Always raised before any mutation reaches the store.
    """

    pass


class MissingRequiredFields(ValidationFailed):
    """Raised when required budget fields are absent, empty or zero"""

    def __init__(self, fields: list[str]) -> None:
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(fields)}")


class InvalidComplexityFactor(ValidationFailed):
    """Raised when a complexity factor is outside the allowed set"""

    def __init__(self, value: float, allowed: tuple[float, ...], where: str = "") -> None:
        self.value = value
        self.allowed = allowed
        self.where = where
        location = f" on {where}" if where else ""
        super().__init__(
            f"Complexity factor {value}{location} must be one of "
            f"{', '.join(str(a) for a in allowed)}"
        )


class DuplicateNodeIdentity(ValidationFailed):
    """Raised when the same story or activity id is submitted twice under one parent"""

    def __init__(self, kind: str, node_id: str) -> None:
        self.kind = kind
        self.node_id = node_id
        super().__init__(f"Duplicate {kind} id {node_id} in submitted tree")


class InvalidEmail(ValidationFailed):
    """Raised when a client email is malformed"""

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__("Invalid email format")


# Referential integrity


class ReferentialConflict(EffortBudgetError):
    """Base class for deletes blocked by records that still reference the target"""

    pass


class ClientHasBudgets(ReferentialConflict):
    """Raised when deleting a client that still has budgets"""

    def __init__(self, client_id: str, budget_count: int) -> None:
        self.client_id = client_id
        self.budget_count = budget_count
        super().__init__(
            f"Cannot delete client {client_id} with {budget_count} associated budget(s)"
        )


# Store


class StoreError(EffortBudgetError):
    """Base class for persistence errors"""

    pass


class TransientStoreFailure(StoreError):
    """
    Raised when the store fails mid-transaction

    The transaction has already been rolled back when this is raised,
    so no partial state is visible to other readers.
    """

    def __init__(self, operation: str, cause: BaseException | None = None) -> None:
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Store failure during {operation}{detail}")
