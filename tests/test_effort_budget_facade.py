"""
Tests for the EffortBudget facade - public API

These tests drive the system the way an adapter does: loose keyword
arguments in, validated models or domain errors out.
"""

from datetime import date

import pytest

from effort_budget import EffortBudget
from effort_budget.budget.commands import ActivityInput, StoryInput
from effort_budget.kernel.config import EstimationPolicy
from effort_budget.kernel.errors import (
    AuthenticationRequired,
    BudgetNotFound,
    ClientHasBudgets,
    ClientNotFound,
    InvalidComplexityFactor,
    InvalidEmail,
    MissingRequiredFields,
    ReferentialConflict,
    TransientStoreFailure,
    ValidationFailed,
)
from effort_budget.kernel.ids import SequentialIdFactory
from tests.helpers import OTHER_USER, USER, activity, budget_params, story, update_params

LOGIN_STORY = story("Login", [activity("Form", 10, complexity_factor=1.5)], complexity_factor=2)


def test_init_creates_schema_and_settings(temp_db):
    eb = EffortBudget(temp_db)

    assert temp_db.exists()
    assert eb.store.database.table_names() == [
        "activities",
        "budgets",
        "clients",
        "settings",
        "stories",
    ]
    settings = eb.get_settings(USER)
    assert settings.default_hourly_rate == 100.0
    assert settings.default_test_percentage == 30.0
    assert settings.default_available_hours == 6.0


def test_sequential_ids(temp_db):
    eb = EffortBudget(temp_db, id_factory=SequentialIdFactory("eb"))

    first = eb.create_client(USER, name="Acme")
    second = eb.create_client(USER, name="Globex")

    assert first.client_id == "eb-0001"
    assert second.client_id == "eb-0002"


# Budgets


def test_create_budget_single_activity(service, client):
    budget = service.create_budget(
        USER,
        **budget_params(
            client.client_id,
            stories=[{"title": "Login", "activities": [{"title": "Form", "hours": 10}]}],
        ),
    )

    assert budget.user_id == USER
    assert budget.client is not None
    assert budget.client.name == "Acme Corp"
    assert budget.total_hours == 10.0
    assert budget.total_test_hours == 3.0
    assert budget.total_value == 1300.0
    assert budget.estimated_days == 3
    assert budget.project_complexity_factor == 1.0


def test_create_ignores_project_factor_update_applies_it(service, client):
    """Creation prices without the project multiplier, updates with it"""
    budget = service.create_budget(
        USER,
        **budget_params(client.client_id, stories=[LOGIN_STORY], project_complexity_factor=2),
    )

    assert budget.project_complexity_factor == 2.0
    assert budget.total_hours == 30.0
    assert budget.total_value == 3900.0
    assert budget.estimated_days == 7

    updated = service.update_budget(USER, budget.budget_id, **update_params(budget)).budget

    # total_hours stays the pre-project-factor sum
    assert updated.total_hours == 30.0
    assert updated.total_test_hours == 18.0
    assert updated.total_value == 7800.0
    assert updated.estimated_days == 13


def test_policy_can_apply_project_factor_on_create(temp_db, test_time):
    eb = EffortBudget(
        temp_db,
        policy=EstimationPolicy(apply_project_complexity_on_create=True),
        time_provider=test_time,
    )
    client = eb.create_client(USER, name="Acme")

    budget = eb.create_budget(
        USER,
        **budget_params(client.client_id, stories=[LOGIN_STORY], project_complexity_factor=2),
    )

    assert budget.total_value == 7800.0
    assert budget.estimated_days == 13


def test_camel_case_payload_accepted(service, client):
    budget = service.create_budget(
        USER,
        **budget_params(
            client.client_id,
            stories=[
                {
                    "title": "Login",
                    "complexityFactor": 2,
                    "activities": [{"title": "Form", "hours": 10, "complexityFactor": 1.5}],
                }
            ],
        ),
    )

    assert budget.total_value == 3900.0


def test_story_models_accepted(service, client):
    stories = [StoryInput(title="Login", activities=[ActivityInput(title="Form", hours=10)])]

    budget = service.create_budget(USER, **budget_params(client.client_id, stories=stories))

    assert budget.stories[0].activities[0].title == "Form"


def test_tree_keeps_submission_order(service, client):
    budget = service.create_budget(
        USER,
        **budget_params(
            client.client_id,
            stories=[
                story("Zeta", [activity("z2", 1), activity("z1", 1)]),
                story("Alpha", [activity("a", 1)]),
            ],
        ),
    )

    fetched = service.get_budget(USER, budget.budget_id)
    assert [s.title for s in fetched.stories] == ["Zeta", "Alpha"]
    assert [a.title for a in fetched.stories[0].activities] == ["z2", "z1"]
    assert fetched.activity_count() == 3


def test_invalid_factor_rejected_before_write(service, client):
    with pytest.raises(InvalidComplexityFactor):
        service.create_budget(
            USER,
            **budget_params(
                client.client_id,
                stories=[story("Login", [activity("Form", 10, complexity_factor=3)])],
            ),
        )

    assert service.list_budgets(USER) == []


@pytest.mark.parametrize(
    "overrides,missing",
    [
        ({"title": ""}, ["title"]),
        ({"test_percentage": 0}, ["test_percentage"]),
        ({"hourly_rate": 0, "available_hours": 0}, ["hourly_rate", "available_hours"]),
    ],
)
def test_missing_required_fields(service, client, overrides, missing):
    with pytest.raises(MissingRequiredFields) as exc_info:
        service.create_budget(USER, **budget_params(client.client_id, **overrides))

    assert exc_info.value.fields == missing


def test_update_requires_project_factor(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id))

    with pytest.raises(MissingRequiredFields) as exc_info:
        service.update_budget(
            USER, budget.budget_id, **update_params(budget, project_complexity_factor=None)
        )

    assert exc_info.value.fields == ["project_complexity_factor"]


def test_schema_errors_become_validation_failed(service, client):
    with pytest.raises(ValidationFailed) as exc_info:
        service.create_budget(
            USER,
            **budget_params(client.client_id, stories=[story("Login", [activity("Form", -2)])]),
        )

    assert "hours" in str(exc_info.value)


def test_unknown_client_rejected(service):
    with pytest.raises(ClientNotFound):
        service.create_budget(USER, **budget_params("no-such-client"))


@pytest.mark.parametrize("user_id", [None, ""])
def test_unauthenticated_calls_rejected(service, client, user_id):
    with pytest.raises(AuthenticationRequired):
        service.create_budget(user_id, **budget_params(client.client_id))
    with pytest.raises(AuthenticationRequired):
        service.list_budgets(user_id)
    with pytest.raises(AuthenticationRequired):
        service.get_client(user_id, client.client_id)

    assert service.list_budgets(USER) == []


def test_other_users_budget_looks_absent(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id))

    with pytest.raises(BudgetNotFound):
        service.get_budget(OTHER_USER, budget.budget_id)
    with pytest.raises(BudgetNotFound):
        service.delete_budget(OTHER_USER, budget.budget_id)

    assert service.get_budget(USER, budget.budget_id).budget_id == budget.budget_id


def test_non_owner_update_with_unknown_client_looks_absent(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id))

    with pytest.raises(BudgetNotFound):
        service.update_budget(
            OTHER_USER, budget.budget_id, **update_params(budget, client_id="missing-client")
        )
    with pytest.raises(ClientNotFound):
        service.update_budget(
            USER, budget.budget_id, **update_params(budget, client_id="missing-client")
        )


def test_read_failure_surfaces_as_store_failure(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id, stories=[LOGIN_STORY]))
    with service.store.database.connect() as conn:
        conn.execute("DROP TABLE activities")

    with pytest.raises(TransientStoreFailure) as exc_info:
        service.get_budget(USER, budget.budget_id)

    assert exc_info.value.operation == "get_budget"


def test_missing_budget(service):
    with pytest.raises(BudgetNotFound) as exc_info:
        service.get_budget(USER, "nope")

    assert exc_info.value.budget_id == "nope"


def test_list_newest_first_with_client_projection(service, client):
    first = service.create_budget(USER, **budget_params(client.client_id, title="First"))
    second = service.create_budget(USER, **budget_params(client.client_id, title="Second"))
    third = service.create_budget(OTHER_USER, **budget_params(client.client_id, title="Third"))

    listed = service.list_budgets(USER)

    assert [b.budget_id for b in listed] == [third.budget_id, second.budget_id, first.budget_id]
    assert listed[0].client.name == "Acme Corp"
    assert listed[0].client.client_id == client.client_id


def test_list_owned_only(service, client):
    mine = service.create_budget(USER, **budget_params(client.client_id))
    service.create_budget(OTHER_USER, **budget_params(client.client_id))

    owned = service.list_budgets(USER, owned_only=True)

    assert [b.budget_id for b in owned] == [mine.budget_id]


def test_estimate_preview_writes_nothing(service):
    totals = service.estimate(
        USER,
        hourly_rate=100,
        test_percentage=30,
        available_hours=6,
        stories=[LOGIN_STORY],
        project_complexity_factor=2,
    )

    assert totals.hours_with_project_complexity == 60.0
    assert totals.total_value == 7800.0
    assert service.list_budgets(USER) == []


def test_estimate_preview_validates_factors(service):
    with pytest.raises(InvalidComplexityFactor):
        service.estimate(
            USER,
            hourly_rate=100,
            test_percentage=30,
            available_hours=6,
            stories=[story("Login", [activity("Form", 10, complexity_factor=1.1)])],
        )


def test_build_proposal(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id, stories=[LOGIN_STORY]))

    proposal = service.build_proposal(USER, budget.budget_id, start=date(2025, 1, 15))

    assert proposal.client_name == "Acme Corp"
    assert proposal.stories[0].hours == 30.0
    assert proposal.stories[0].activities[0].hours == 15.0
    assert proposal.total_value == 3900.0
    assert proposal.estimated_days == 7
    assert proposal.duration_label == "2 weeks"
    assert proposal.delivery_date == date(2025, 1, 23)


def test_proposal_without_start_has_no_date(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id, stories=[LOGIN_STORY]))

    assert service.build_proposal(USER, budget.budget_id).delivery_date is None


# Clients


def test_client_validation(service):
    with pytest.raises(ValidationFailed):
        service.create_client(USER, name="   ")
    with pytest.raises(InvalidEmail):
        service.create_client(USER, name="Acme", email="acme.test")

    blank_email = service.create_client(USER, name="Acme", email="")
    assert blank_email.email is None


def test_clients_listed_by_name(service):
    service.create_client(USER, name="Globex")
    service.create_client(USER, name="Acme")
    service.create_client(USER, name="Initech")

    assert [c.name for c in service.list_clients(USER)] == ["Acme", "Globex", "Initech"]


def test_update_client_keeps_logo_when_not_supplied(service):
    client = service.create_client(USER, name="Acme", logo_url="https://cdn.test/acme.png")

    renamed = service.update_client(USER, client.client_id, name="Acme Inc", email="hi@acme.test")
    assert renamed.name == "Acme Inc"
    assert renamed.logo_url == "https://cdn.test/acme.png"

    relogo = service.update_client(
        USER, client.client_id, name="Acme Inc", logo_url="https://cdn.test/new.png"
    )
    assert relogo.logo_url == "https://cdn.test/new.png"


def test_update_missing_client(service):
    with pytest.raises(ClientNotFound):
        service.update_client(USER, "nope", name="Ghost")


def test_client_rename_shows_in_budgets(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id))

    service.update_client(USER, client.client_id, name="Acme Renamed")

    assert service.get_budget(USER, budget.budget_id).client.name == "Acme Renamed"


def test_client_with_budgets_cannot_be_deleted(service, client):
    budget = service.create_budget(USER, **budget_params(client.client_id))

    with pytest.raises(ReferentialConflict) as exc_info:
        service.delete_client(USER, client.client_id)
    assert isinstance(exc_info.value, ClientHasBudgets)
    assert exc_info.value.budget_count == 1
    assert service.get_client(USER, client.client_id).name == "Acme Corp"

    service.delete_budget(USER, budget.budget_id)
    deleted = service.delete_client(USER, client.client_id)

    assert deleted.client_id == client.client_id
    with pytest.raises(ClientNotFound):
        service.get_client(USER, client.client_id)


def test_delete_missing_client(service):
    with pytest.raises(ClientNotFound):
        service.delete_client(USER, "nope")


# Settings


def test_update_settings_partially(service):
    updated = service.update_settings(USER, default_hourly_rate=120)

    assert updated.default_hourly_rate == 120.0
    assert updated.default_test_percentage == 30.0
    assert updated.default_available_hours == 6.0


def test_settings_survive_reopen(temp_db):
    EffortBudget(temp_db).update_settings(USER, default_available_hours=7)

    reopened = EffortBudget(temp_db)

    assert reopened.get_settings(USER).default_available_hours == 7.0


def test_invalid_settings_rejected(service):
    with pytest.raises(ValidationFailed):
        service.update_settings(USER, default_test_percentage=150)
