"""
Tests for budget invariants

Invariants are pure functions, so every rejection here happens without
a database in sight.
"""

import pytest

from effort_budget.budget.commands import ActivityInput, CreateBudget, StoryInput, UpdateBudget
from effort_budget.budget.invariants import (
    CREATE_REQUIRED_FIELDS,
    UPDATE_REQUIRED_FIELDS,
    validate_authenticated,
    validate_budget_payload,
    validate_client_deletable,
    validate_complexity_factor,
    validate_email,
    validate_required_fields,
    validate_unique_identities,
)
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import (
    AuthenticationRequired,
    ClientHasBudgets,
    DuplicateNodeIdentity,
    InvalidComplexityFactor,
    InvalidEmail,
    MissingRequiredFields,
    ReferentialConflict,
    ValidationFailed,
)


def full_values(**overrides):
    values = {
        "client_id": "client-1",
        "title": "Portal",
        "hourly_rate": 100,
        "test_percentage": 30,
        "available_hours": 6,
        "project_complexity_factor": 1,
    }
    values.update(overrides)
    return values


@pytest.mark.parametrize("user_id", [None, ""])
def test_unauthenticated_rejected(user_id):
    with pytest.raises(AuthenticationRequired):
        validate_authenticated(user_id)


def test_authenticated_user_returned():
    assert validate_authenticated("user-1") == "user-1"


def test_required_fields_present():
    validate_required_fields(full_values(), UPDATE_REQUIRED_FIELDS)


def test_missing_fields_all_listed():
    with pytest.raises(MissingRequiredFields) as exc_info:
        validate_required_fields(full_values(title="", hourly_rate=None), CREATE_REQUIRED_FIELDS)

    assert exc_info.value.fields == ["title", "hourly_rate"]
    assert isinstance(exc_info.value, ValidationFailed)


def test_zero_counts_as_missing():
    """A 0% test share is rejected like an absent one"""
    with pytest.raises(MissingRequiredFields) as exc_info:
        validate_required_fields(full_values(test_percentage=0), CREATE_REQUIRED_FIELDS)

    assert exc_info.value.fields == ["test_percentage"]


def test_project_factor_required_only_on_update():
    values = full_values(project_complexity_factor=None)

    validate_required_fields(values, CREATE_REQUIRED_FIELDS)
    with pytest.raises(MissingRequiredFields) as exc_info:
        validate_required_fields(values, UPDATE_REQUIRED_FIELDS)
    assert exc_info.value.fields == ["project_complexity_factor"]


@pytest.mark.parametrize("value", [1, 1.2, 1.5, 2])
def test_allowed_factors(value):
    assert validate_complexity_factor(value, EstimationPolicy()) == float(value)


def test_missing_factor_defaults_to_one():
    assert validate_complexity_factor(None, EstimationPolicy()) == 1.0


@pytest.mark.parametrize("value", [0.5, 1.3, 3])
def test_factor_outside_set_rejected(value):
    with pytest.raises(InvalidComplexityFactor) as exc_info:
        validate_complexity_factor(value, EstimationPolicy(), "project")

    assert exc_info.value.value == value
    assert exc_info.value.where == "project"


def test_custom_factor_set():
    policy = EstimationPolicy(allowed_complexity_factors=(1, 3))

    assert validate_complexity_factor(3, policy) == 3.0
    with pytest.raises(InvalidComplexityFactor):
        validate_complexity_factor(2, policy)


def test_policy_rejects_factor_below_one():
    with pytest.raises(ValueError):
        EstimationPolicy(allowed_complexity_factors=(0.5, 1))


def test_payload_with_bad_activity_factor_rejected():
    command = CreateBudget(
        client_id="client-1",
        title="Portal",
        hourly_rate=100,
        test_percentage=30,
        available_hours=6,
        stories=[
            StoryInput(
                title="Login",
                activities=[ActivityInput(title="Form", hours=5, complexity_factor=1.7)],
            )
        ],
    )

    with pytest.raises(InvalidComplexityFactor) as exc_info:
        validate_budget_payload(command, EstimationPolicy())
    assert "Form" in exc_info.value.where


def test_payload_with_bad_project_factor_rejected():
    command = UpdateBudget(
        client_id="client-1",
        title="Portal",
        hourly_rate=100,
        test_percentage=30,
        available_hours=6,
        project_complexity_factor=1.1,
    )

    with pytest.raises(InvalidComplexityFactor):
        validate_budget_payload(command, EstimationPolicy())


def test_test_percentage_capped_by_policy():
    command = CreateBudget(
        client_id="client-1",
        title="Portal",
        hourly_rate=100,
        test_percentage=60,
        available_hours=6,
    )

    validate_budget_payload(command, EstimationPolicy())
    with pytest.raises(ValidationFailed):
        validate_budget_payload(command, EstimationPolicy(max_test_percentage=50))


def test_duplicate_story_ids_rejected():
    stories = [StoryInput(id="s-1", title="A"), StoryInput(id="s-1", title="B")]

    with pytest.raises(DuplicateNodeIdentity) as exc_info:
        validate_unique_identities(stories)
    assert exc_info.value.kind == "story"
    assert exc_info.value.node_id == "s-1"


def test_duplicate_activity_ids_within_story_rejected():
    stories = [
        StoryInput(
            title="A",
            activities=[
                ActivityInput(id="a-1", title="x", hours=1),
                ActivityInput(id="a-1", title="y", hours=2),
            ],
        )
    ]

    with pytest.raises(DuplicateNodeIdentity) as exc_info:
        validate_unique_identities(stories)
    assert exc_info.value.kind == "activity"


def test_same_activity_id_under_different_stories_allowed():
    """Ids are only compared between siblings"""
    stories = [
        StoryInput(title="A", activities=[ActivityInput(id="a-1", title="x", hours=1)]),
        StoryInput(title="B", activities=[ActivityInput(id="a-1", title="y", hours=1)]),
    ]

    validate_unique_identities(stories)


def test_nodes_without_ids_never_collide():
    stories = [StoryInput(title="A"), StoryInput(title="B")]

    validate_unique_identities(stories)


def test_email_must_contain_at_sign():
    validate_email("ops@acme.test")
    validate_email(None)

    with pytest.raises(InvalidEmail):
        validate_email("not-an-email")


def test_client_with_budgets_not_deletable():
    validate_client_deletable("client-1", 0)

    with pytest.raises(ClientHasBudgets) as exc_info:
        validate_client_deletable("client-1", 2)

    assert exc_info.value.budget_count == 2
    assert isinstance(exc_info.value, ReferentialConflict)
