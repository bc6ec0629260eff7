"""
Budget Module Invariants - validation run before any mutation

Pure functions: each one either returns (possibly a normalised value)
or raises a ValidationFailed / NotFound / ReferentialConflict subclass.
Handlers call them before opening a transaction, so a rejected request
never touches the store.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from effort_budget.budget.commands import BudgetPayload, StoryInput
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import (
    AuthenticationRequired,
    ClientHasBudgets,
    DuplicateNodeIdentity,
    InvalidComplexityFactor,
    InvalidEmail,
    MissingRequiredFields,
    ValidationFailed,
)

CREATE_REQUIRED_FIELDS = (
    "client_id",
    "title",
    "hourly_rate",
    "test_percentage",
    "available_hours",
)
UPDATE_REQUIRED_FIELDS = CREATE_REQUIRED_FIELDS + ("project_complexity_factor",)


def validate_authenticated(user_id: str | None) -> str:
    """
    Require a current user

    Raises:
        AuthenticationRequired: If user_id is None or empty
    """
    if not user_id:
        raise AuthenticationRequired()
    return user_id


def validate_required_fields(values: Mapping[str, Any], required: Iterable[str]) -> None:
    """
    Reject absent, empty or zero required fields

    Zero counts as missing: a budget with 0% tests, rate 0 or 0 hours per
    day is rejected here rather than later.

    Raises:
        MissingRequiredFields: Listing every offending field
    """
    missing = [name for name in required if not values.get(name)]
    if missing:
        raise MissingRequiredFields(missing)


def validate_complexity_factor(
    value: float | None, policy: EstimationPolicy, where: str = ""
) -> float:
    """
    Normalise a complexity factor

    Returns:
        The factor, or 1.0 when absent

    Raises:
        InvalidComplexityFactor: If present and not in the allowed set
    """
    if value is None:
        return 1.0
    if not policy.is_allowed_factor(value):
        raise InvalidComplexityFactor(value, policy.allowed_complexity_factors, where)
    return float(value)


def validate_tree_factors(stories: Iterable[StoryInput], policy: EstimationPolicy) -> None:
    """Check every story and activity multiplier in a submitted tree"""
    for story in stories:
        validate_complexity_factor(story.complexity_factor, policy, f"story '{story.title}'")
        for activity in story.activities:
            validate_complexity_factor(
                activity.complexity_factor, policy, f"activity '{activity.title}'"
            )


def validate_unique_identities(stories: list[StoryInput]) -> None:
    """
    Reject a tree where a sibling list repeats an id

    Ids are compared per parent: two stories may not share an id, and two
    activities of the same story may not share one.

    Raises:
        DuplicateNodeIdentity: On the first repeated id
    """
    seen_stories: set[str] = set()
    for story in stories:
        if story.id is not None:
            if story.id in seen_stories:
                raise DuplicateNodeIdentity("story", story.id)
            seen_stories.add(story.id)

        seen_activities: set[str] = set()
        for activity in story.activities:
            if activity.id is None:
                continue
            if activity.id in seen_activities:
                raise DuplicateNodeIdentity("activity", activity.id)
            seen_activities.add(activity.id)


def validate_test_percentage(value: float, policy: EstimationPolicy) -> None:
    if value < 0 or value > policy.max_test_percentage:
        raise ValidationFailed(
            f"Test percentage {value} must be between 0 and {policy.max_test_percentage}"
        )


def validate_budget_payload(payload: BudgetPayload, policy: EstimationPolicy) -> None:
    """All checks a budget create/update needs after schema validation"""
    validate_test_percentage(payload.test_percentage, policy)
    validate_tree_factors(payload.stories, policy)
    validate_unique_identities(payload.stories)
    project_factor = getattr(payload, "project_complexity_factor", None)
    validate_complexity_factor(project_factor, policy, "project")


def validate_email(email: str | None) -> None:
    """
    Minimal email check: present emails must contain "@"

    Raises:
        InvalidEmail: If malformed
    """
    if email and "@" not in email:
        raise InvalidEmail(email)


def validate_client_deletable(client_id: str, budget_count: int) -> None:
    """
    Referential guard: clients with budgets cannot be deleted

    Raises:
        ClientHasBudgets: If budget_count > 0
    """
    if budget_count > 0:
        raise ClientHasBudgets(client_id=client_id, budget_count=budget_count)
