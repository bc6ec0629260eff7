"""
Budget Module Handlers - validate, compute, persist

Handlers are the decision-making layer. For every command they:
1. Validate invariants (nothing written yet)
2. Compute derived totals with the calculator
3. Open one transaction and apply the writes
4. Return the re-read, canonical state
"""

from effort_budget.budget.calculator import calculate_estimate
from effort_budget.budget.commands import (
    CreateBudget,
    CreateClient,
    UpdateBudget,
    UpdateClient,
    UpdateSettings,
)
from effort_budget.budget.invariants import (
    validate_budget_payload,
    validate_client_deletable,
    validate_email,
)
from effort_budget.budget.models import Budget, Client, EstimateTotals, Settings
from effort_budget.budget.reconciler import ReconcileResult, TreeReconciler
from effort_budget.budget.store import BudgetStore, StoreSession
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import BudgetNotFound, ClientNotFound
from effort_budget.kernel.metrics import estimated_days_histogram, record_reconciliation


class BudgetCommandHandlers:
    """
    Command handlers for budgets, clients and settings

    Args:
        store: Transactional store
        policy: Estimation parameters
        reconciler: Tree reconciler (injectable for testing)
    """

    def __init__(
        self,
        store: BudgetStore,
        policy: EstimationPolicy,
        reconciler: TreeReconciler | None = None,
    ) -> None:
        self.store = store
        self.policy = policy
        self.reconciler = reconciler or TreeReconciler()

    # Budgets

    def estimate_create(self, command: CreateBudget) -> EstimateTotals:
        """Totals as create_budget would persist them"""
        return calculate_estimate(
            command.stories,
            hourly_rate=command.hourly_rate,
            test_percentage=command.test_percentage,
            available_hours=command.available_hours,
            project_complexity_factor=command.project_complexity_factor,
            apply_project_complexity=self.policy.apply_project_complexity_on_create,
        )

    def estimate_update(self, command: UpdateBudget) -> EstimateTotals:
        """Totals as update_budget would persist them"""
        return calculate_estimate(
            command.stories,
            hourly_rate=command.hourly_rate,
            test_percentage=command.test_percentage,
            available_hours=command.available_hours,
            project_complexity_factor=command.project_complexity_factor,
        )

    def handle_create_budget(self, command: CreateBudget, user_id: str) -> Budget:
        """
        Create a budget with its initial tree

        Raises:
            ValidationFailed: On invalid factors or percentages
            ClientNotFound: If the referenced client does not exist
        """
        validate_budget_payload(command, self.policy)
        totals = self.estimate_create(command)

        with self.store.transaction("create_budget") as session:
            self._require_client(session, command.client_id)
            budget_id = session.insert_budget(
                user_id=user_id,
                client_id=command.client_id,
                title=command.title,
                hourly_rate=command.hourly_rate,
                test_percentage=command.test_percentage,
                available_hours=command.available_hours,
                project_complexity_factor=command.project_complexity_factor or 1.0,
                totals=totals,
            )
            for story in command.stories:
                session.insert_story(budget_id, story)
            budget = session.get_budget(budget_id)
            if budget is None:
                raise BudgetNotFound(budget_id)

        estimated_days_histogram.observe(budget.estimated_days)
        return budget

    def handle_update_budget(
        self, command: UpdateBudget, budget_id: str, user_id: str
    ) -> ReconcileResult:
        """
        Replace a budget's header and tree in one transaction

        Raises:
            ValidationFailed: On invalid factors, percentages or duplicate ids
            BudgetNotFound: If absent or not owned by user_id
            ClientNotFound: If the new client does not exist
        """
        validate_budget_payload(command, self.policy)
        totals = self.estimate_update(command)

        with self.store.transaction("update_budget") as session:
            if not session.budget_owned_by(budget_id, user_id):
                raise BudgetNotFound(budget_id)
            self._require_client(session, command.client_id)
            result = self.reconciler.reconcile(session, budget_id, user_id, command, totals)

        stats = result.stats
        record_reconciliation(
            "story", stats.stories_created, stats.stories_updated, stats.stories_deleted
        )
        record_reconciliation(
            "activity",
            stats.activities_created,
            stats.activities_updated,
            stats.activities_deleted,
        )
        estimated_days_histogram.observe(result.budget.estimated_days)
        return result

    def handle_delete_budget(self, budget_id: str, user_id: str) -> None:
        with self.store.transaction("delete_budget") as session:
            if session.get_budget(budget_id, user_id=user_id) is None:
                raise BudgetNotFound(budget_id)
            session.delete_budget(budget_id)

    # Clients

    def handle_create_client(self, command: CreateClient) -> Client:
        validate_email(command.email)
        with self.store.transaction("create_client") as session:
            return session.insert_client(command.name, command.email, command.logo_url)

    def handle_update_client(self, client_id: str, command: UpdateClient) -> Client:
        validate_email(command.email)
        with self.store.transaction("update_client") as session:
            client = session.update_client(
                client_id, command.name, command.email, command.logo_url
            )
            if client is None:
                raise ClientNotFound(client_id)
            return client

    def handle_delete_client(self, client_id: str) -> Client:
        """
        Delete a client that no budget references

        Returns:
            The deleted client (callers may clean up its logo)

        Raises:
            ClientNotFound: If absent
            ClientHasBudgets: If budgets still reference it
        """
        with self.store.transaction("delete_client") as session:
            client = self._require_client(session, client_id)
            validate_client_deletable(client_id, session.count_budgets_for_client(client_id))
            session.delete_client(client_id)
            return client

    # Settings

    def handle_update_settings(self, command: UpdateSettings) -> Settings:
        with self.store.transaction("update_settings") as session:
            current = session.get_settings()
            base = current.model_dump() if current else {
                "default_hourly_rate": self.policy.default_hourly_rate,
                "default_test_percentage": self.policy.default_test_percentage,
                "default_available_hours": self.policy.default_available_hours,
            }
            changes = command.model_dump(exclude_none=True)
            merged = {**base, **changes}
            return session.save_settings(
                merged["default_hourly_rate"],
                merged["default_test_percentage"],
                merged["default_available_hours"],
            )

    def _require_client(self, session: StoreSession, client_id: str) -> Client:
        client = session.get_client(client_id)
        if client is None:
            raise ClientNotFound(client_id)
        return client
