"""
EffortBudget - main facade

The single entry point adapters (CLI, HTTP routes, tests) use. It turns
loose keyword arguments into validated commands, checks the current user,
and wraps every operation in logging and metrics.

Example:
    >>> from effort_budget import EffortBudget
    >>> eb = EffortBudget("budgets.db")
    >>> client = eb.create_client("user-1", name="Acme")
    >>> budget = eb.create_budget(
    ...     "user-1",
    ...     client_id=client.client_id,
    ...     title="Customer portal",
    ...     hourly_rate=100,
    ...     test_percentage=30,
    ...     available_hours=6,
    ...     stories=[{"title": "Login", "activities": [{"title": "Form", "hours": 10}]}],
    ... )
    >>> budget.total_value
    1300.0
"""

from collections.abc import Sequence
from datetime import date
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError

from effort_budget.budget.commands import (
    CreateBudget,
    CreateClient,
    StoryInput,
    UpdateBudget,
    UpdateClient,
    UpdateSettings,
)
from effort_budget.budget.handlers import BudgetCommandHandlers
from effort_budget.budget.invariants import (
    CREATE_REQUIRED_FIELDS,
    UPDATE_REQUIRED_FIELDS,
    validate_authenticated,
    validate_budget_payload,
    validate_required_fields,
)
from effort_budget.budget.models import Budget, BudgetSummary, Client, EstimateTotals, Settings
from effort_budget.budget.proposal import ProposalSummary, build_proposal
from effort_budget.budget.reconciler import ReconcileResult
from effort_budget.budget.store import BudgetStore
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import (
    BudgetNotFound,
    ClientNotFound,
    StoreError,
    ValidationFailed,
)
from effort_budget.kernel.ids import IdFactory
from effort_budget.kernel.logging import LogOperation, get_logger
from effort_budget.kernel.metrics import budgets_total, track_operation
from effort_budget.kernel.time import TimeProvider

logger = get_logger(__name__)

StoriesArg = Sequence[StoryInput | dict[str, Any]]


def _build(model: type[BaseModel], data: dict[str, Any]) -> Any:
    """Validate a command, reporting schema errors as ValidationFailed"""
    try:
        return model.model_validate(data)
    except ValidationError as e:
        reasons = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationFailed(f"Invalid {model.__name__}: {reasons}") from e


def _stories_payload(stories: StoriesArg | None) -> list[Any]:
    return [
        story.model_dump() if isinstance(story, StoryInput) else story
        for story in (stories or [])
    ]


class EffortBudget:
    """
    Effort Budget facade

    Every method takes the current user id first. None (or "") means the
    caller is not authenticated and raises AuthenticationRequired before
    anything else happens.

    Args:
        sqlite_path: Path to SQLite database
        policy: Estimation policy (defaults if None)
        time_provider: Clock (real time if None)
        id_factory: Id generation (time-ordered UUIDs if None)
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        policy: EstimationPolicy | None = None,
        time_provider: TimeProvider | None = None,
        id_factory: IdFactory | None = None,
    ) -> None:
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or EstimationPolicy()
        self.store = BudgetStore(
            self.sqlite_path,
            policy=self.policy,
            time_provider=time_provider,
            id_factory=id_factory,
        )
        self.handlers = BudgetCommandHandlers(self.store, self.policy)

    # Budget operations

    @track_operation("create_budget")
    def create_budget(
        self,
        user_id: str | None,
        *,
        client_id: str,
        title: str,
        hourly_rate: float,
        test_percentage: float,
        available_hours: float,
        stories: StoriesArg | None = None,
        project_complexity_factor: float | None = None,
    ) -> Budget:
        """
        Create a budget with its initial story/activity tree

        Totals are computed without the project complexity factor unless
        the policy's apply_project_complexity_on_create is set.

        Raises:
            AuthenticationRequired, MissingRequiredFields, ValidationFailed,
            ClientNotFound, TransientStoreFailure
        """
        user_id = validate_authenticated(user_id)
        values = {
            "client_id": client_id,
            "title": title,
            "hourly_rate": hourly_rate,
            "test_percentage": test_percentage,
            "available_hours": available_hours,
            "project_complexity_factor": project_complexity_factor,
            "stories": _stories_payload(stories),
        }
        with LogOperation(logger, "create_budget", user_id=user_id, client_id=client_id) as op:
            validate_required_fields(values, CREATE_REQUIRED_FIELDS)
            command: CreateBudget = _build(CreateBudget, values)
            budget = self.handlers.handle_create_budget(command, user_id)
            op.bind(budget_id=budget.budget_id, estimated_days=budget.estimated_days)
        return budget

    @track_operation("get_budget")
    def get_budget(self, user_id: str | None, budget_id: str) -> Budget:
        """
        Budget with client and ordered tree

        Raises:
            BudgetNotFound: If absent or owned by another user
        """
        user_id = validate_authenticated(user_id)
        with self.store.session("get_budget") as session:
            budget = session.get_budget(budget_id, user_id=user_id)
        if budget is None:
            raise BudgetNotFound(budget_id)
        return budget

    @track_operation("update_budget")
    def update_budget(
        self,
        user_id: str | None,
        budget_id: str,
        *,
        client_id: str,
        title: str,
        hourly_rate: float,
        test_percentage: float,
        available_hours: float,
        project_complexity_factor: float,
        stories: StoriesArg,
    ) -> ReconcileResult:
        """
        Replace a budget's parameters and full tree

        `stories` is the complete desired tree: nodes carrying a persisted
        id are updated, nodes without one are created, persisted nodes
        left out are deleted. Everything happens in one transaction.

        Returns:
            ReconcileResult with the refreshed budget and row counts

        Raises:
            AuthenticationRequired, MissingRequiredFields, ValidationFailed,
            BudgetNotFound, ClientNotFound, TransientStoreFailure
        """
        user_id = validate_authenticated(user_id)
        values = {
            "client_id": client_id,
            "title": title,
            "hourly_rate": hourly_rate,
            "test_percentage": test_percentage,
            "available_hours": available_hours,
            "project_complexity_factor": project_complexity_factor,
            "stories": _stories_payload(stories),
        }
        with LogOperation(logger, "update_budget", user_id=user_id, budget_id=budget_id) as op:
            validate_required_fields(values, UPDATE_REQUIRED_FIELDS)
            command: UpdateBudget = _build(UpdateBudget, values)
            result = self.handlers.handle_update_budget(command, budget_id, user_id)
            op.bind(
                structural_changes=result.stats.structural_changes,
                estimated_days=result.budget.estimated_days,
            )
        return result

    @track_operation("list_budgets")
    def list_budgets(self, user_id: str | None, owned_only: bool = False) -> list[BudgetSummary]:
        """
        Budgets newest first with a minimal client projection

        Args:
            user_id: Current user
            owned_only: Restrict to budgets owned by user_id
        """
        user_id = validate_authenticated(user_id)
        with self.store.session("list_budgets") as session:
            budgets = session.list_budgets(user_id if owned_only else None)
        if not owned_only:
            budgets_total.set(len(budgets))
        return budgets

    @track_operation("delete_budget")
    def delete_budget(self, user_id: str | None, budget_id: str) -> None:
        user_id = validate_authenticated(user_id)
        with LogOperation(logger, "delete_budget", user_id=user_id, budget_id=budget_id):
            self.handlers.handle_delete_budget(budget_id, user_id)

    def estimate(
        self,
        user_id: str | None,
        *,
        hourly_rate: float,
        test_percentage: float,
        available_hours: float,
        stories: StoriesArg,
        project_complexity_factor: float | None = None,
    ) -> EstimateTotals:
        """Preview totals for a tree without persisting anything"""
        validate_authenticated(user_id)
        command: UpdateBudget = _build(
            UpdateBudget,
            {
                "client_id": "preview",
                "title": "preview",
                "hourly_rate": hourly_rate,
                "test_percentage": test_percentage,
                "available_hours": available_hours,
                "project_complexity_factor": project_complexity_factor or 1.0,
                "stories": _stories_payload(stories),
            },
        )
        validate_budget_payload(command, self.policy)
        return self.handlers.estimate_update(command)

    def build_proposal(
        self, user_id: str | None, budget_id: str, start: date | None = None
    ) -> ProposalSummary:
        """Plain-data proposal for the renderer"""
        budget = self.get_budget(user_id, budget_id)
        return build_proposal(budget, start=start, policy=self.policy)

    # Client operations

    @track_operation("create_client")
    def create_client(
        self,
        user_id: str | None,
        *,
        name: str,
        email: str | None = None,
        logo_url: str | None = None,
    ) -> Client:
        """
        Raises:
            ValidationFailed: Blank name
            InvalidEmail: Email without "@"
        """
        validate_authenticated(user_id)
        command: CreateClient = _build(
            CreateClient, {"name": name, "email": email, "logo_url": logo_url}
        )
        with LogOperation(logger, "create_client", email=command.email) as op:
            client = self.handlers.handle_create_client(command)
            op.bind(client_id=client.client_id)
        return client

    def get_client(self, user_id: str | None, client_id: str) -> Client:
        validate_authenticated(user_id)
        with self.store.session("get_client") as session:
            client = session.get_client(client_id)
        if client is None:
            raise ClientNotFound(client_id)
        return client

    def list_clients(self, user_id: str | None) -> list[Client]:
        """Clients ordered by name"""
        validate_authenticated(user_id)
        with self.store.session("list_clients") as session:
            return session.list_clients()

    @track_operation("update_client")
    def update_client(
        self,
        user_id: str | None,
        client_id: str,
        *,
        name: str,
        email: str | None = None,
        logo_url: str | None = None,
    ) -> Client:
        """Update a client; logo_url=None keeps the current logo"""
        validate_authenticated(user_id)
        command: UpdateClient = _build(
            UpdateClient, {"name": name, "email": email, "logo_url": logo_url}
        )
        with LogOperation(logger, "update_client", client_id=client_id):
            return self.handlers.handle_update_client(client_id, command)

    @track_operation("delete_client")
    def delete_client(self, user_id: str | None, client_id: str) -> Client:
        """
        Raises:
            ClientNotFound: If absent
            ClientHasBudgets: If any budget references the client
        """
        validate_authenticated(user_id)
        with LogOperation(logger, "delete_client", client_id=client_id):
            return self.handlers.handle_delete_client(client_id)

    # Settings

    def get_settings(self, user_id: str | None) -> Settings:
        validate_authenticated(user_id)
        with self.store.session("get_settings") as session:
            settings = session.get_settings()
        if settings is None:
            raise StoreError("Settings row missing; the store was not initialised")
        return settings

    def update_settings(
        self,
        user_id: str | None,
        *,
        default_hourly_rate: float | None = None,
        default_test_percentage: float | None = None,
        default_available_hours: float | None = None,
    ) -> Settings:
        validate_authenticated(user_id)
        command: UpdateSettings = _build(
            UpdateSettings,
            {
                "default_hourly_rate": default_hourly_rate,
                "default_test_percentage": default_test_percentage,
                "default_available_hours": default_available_hours,
            },
        )
        with LogOperation(logger, "update_settings"):
            return self.handlers.handle_update_settings(command)
