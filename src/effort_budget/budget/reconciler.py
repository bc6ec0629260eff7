"""
Tree Reconciler - bring a persisted story/activity tree in line with a submitted one

The caller submits the complete desired tree. Nodes are matched to
persisted nodes by id only, and only among siblings of the same parent:

- to_keep:   submitted nodes whose id is persisted under that parent
- to_create: submitted nodes with no id, or an id unknown under that parent
- to_remove: persisted nodes whose id does not appear in the submission

Order of writes (all inside the caller's transaction):
  1. budget scalars and recomputed totals
  2. bulk delete removed stories (activities cascade)
  3. per kept story: update it, then delete / update / create its activities
  4. create new stories with their activities
  5. re-read the budget

Submitting the tree that is already persisted touches no rows
structurally: every node lands in to_keep and is rewritten in place.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Generic, Protocol, TypeVar

from effort_budget.budget.commands import StoryInput, UpdateBudget
from effort_budget.budget.models import Budget, EstimateTotals, Story
from effort_budget.budget.store import StoreSession
from effort_budget.kernel.errors import BudgetNotFound
from effort_budget.kernel.logging import get_logger

logger = get_logger(__name__)


class Identified(Protocol):
    id: str | None


P = TypeVar("P")
S = TypeVar("S", bound=Identified)


@dataclass
class IdentityDiff(Generic[P, S]):
    """Three-way split of one sibling level"""

    to_keep: list[tuple[S, P]] = field(default_factory=list)
    to_create: list[S] = field(default_factory=list)
    to_remove: list[P] = field(default_factory=list)


def diff_by_identity(persisted: Mapping[str, P], submitted: Sequence[S]) -> IdentityDiff[P, S]:
    """
    Split one sibling level into keep / create / remove

    Args:
        persisted: Persisted nodes of one parent, keyed by id
        submitted: Submitted nodes for the same parent

    Returns:
        IdentityDiff; to_keep pairs each submitted node with its persisted
        counterpart, in submission order
    """
    diff: IdentityDiff[P, S] = IdentityDiff()
    submitted_ids: set[str] = set()

    for node in submitted:
        match = persisted.get(node.id) if node.id is not None else None
        if match is None:
            diff.to_create.append(node)
        else:
            diff.to_keep.append((node, match))
            submitted_ids.add(node.id)  # type: ignore[arg-type]

    diff.to_remove = [node for node_id, node in persisted.items() if node_id not in submitted_ids]
    return diff


@dataclass
class ReconcileStats:
    """Row counts touched by one reconciliation"""

    stories_created: int = 0
    stories_updated: int = 0
    stories_deleted: int = 0
    activities_created: int = 0
    activities_updated: int = 0
    activities_deleted: int = 0

    @property
    def structural_changes(self) -> int:
        """Creates plus deletes; zero for an idempotent resubmission"""
        return (
            self.stories_created
            + self.stories_deleted
            + self.activities_created
            + self.activities_deleted
        )


@dataclass
class ReconcileResult:
    budget: Budget
    stats: ReconcileStats


class TreeReconciler:
    """
    Applies an UpdateBudget command to a persisted budget

    The reconciler never opens or commits a transaction itself; it is
    handed a StoreSession that is already inside one.
    """

    def reconcile(
        self,
        session: StoreSession,
        budget_id: str,
        user_id: str,
        command: UpdateBudget,
        totals: EstimateTotals,
    ) -> ReconcileResult:
        """
        Replace the budget header and tree

        Args:
            session: Session bound to the caller's transaction
            budget_id: Target budget
            user_id: Requesting user; must own the budget
            command: Validated update command
            totals: Calculator output for the submitted tree

        Returns:
            ReconcileResult with the re-read budget and row counts

        Raises:
            BudgetNotFound: If the budget is absent or owned by someone else
        """
        current = session.get_budget(budget_id, user_id=user_id)
        if current is None:
            raise BudgetNotFound(budget_id)

        stats = ReconcileStats()

        session.update_budget(
            budget_id,
            client_id=command.client_id,
            title=command.title,
            hourly_rate=command.hourly_rate,
            test_percentage=command.test_percentage,
            available_hours=command.available_hours,
            project_complexity_factor=command.project_complexity_factor,
            totals=totals,
        )

        story_diff = diff_by_identity(
            {story.story_id: story for story in current.stories}, command.stories
        )

        stats.stories_deleted = session.delete_stories(
            [story.story_id for story in story_diff.to_remove]
        )

        for submitted, persisted in story_diff.to_keep:
            session.update_story(persisted.story_id, submitted.title, submitted.complexity_factor)
            stats.stories_updated += 1
            self._reconcile_activities(session, persisted, submitted, stats)

        for submitted in story_diff.to_create:
            session.insert_story(budget_id, submitted)
            stats.stories_created += 1
            stats.activities_created += len(submitted.activities)

        refreshed = session.get_budget(budget_id)
        if refreshed is None:
            raise BudgetNotFound(budget_id)

        logger.info(
            "Budget tree reconciled",
            budget_id=budget_id,
            stories_created=stats.stories_created,
            stories_updated=stats.stories_updated,
            stories_deleted=stats.stories_deleted,
            activities_created=stats.activities_created,
            activities_updated=stats.activities_updated,
            activities_deleted=stats.activities_deleted,
        )
        return ReconcileResult(budget=refreshed, stats=stats)

    def _reconcile_activities(
        self,
        session: StoreSession,
        persisted: Story,
        submitted: StoryInput,
        stats: ReconcileStats,
    ) -> None:
        activity_diff = diff_by_identity(
            {activity.activity_id: activity for activity in persisted.activities},
            submitted.activities,
        )

        stats.activities_deleted += session.delete_activities(
            [activity.activity_id for activity in activity_diff.to_remove]
        )

        for submitted_activity, persisted_activity in activity_diff.to_keep:
            session.update_activity(persisted_activity.activity_id, submitted_activity)
            stats.activities_updated += 1

        if activity_diff.to_create:
            session.insert_activities(persisted.story_id, activity_diff.to_create)
            stats.activities_created += len(activity_diff.to_create)
