"""
Test Helper Functions - builders for budget payloads

Builders keep tests focused on the numbers that matter. Payloads are
plain dicts, the same shape callers send to the facade.
"""

from typing import Any

from effort_budget.budget.models import Budget

USER = "user-alice"
OTHER_USER = "user-bob"


def activity(
    title: str,
    hours: float,
    complexity_factor: float | None = None,
    id: str | None = None,
    description: str | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {"title": title, "hours": hours}
    if complexity_factor is not None:
        data["complexity_factor"] = complexity_factor
    if id is not None:
        data["id"] = id
    if description is not None:
        data["description"] = description
    return data


def story(
    title: str,
    activities: list[dict[str, Any]],
    complexity_factor: float | None = None,
    id: str | None = None,
) -> dict[str, Any]:
    data: dict[str, Any] = {"title": title, "activities": activities}
    if complexity_factor is not None:
        data["complexity_factor"] = complexity_factor
    if id is not None:
        data["id"] = id
    return data


def budget_params(client_id: str, **overrides: Any) -> dict[str, Any]:
    """Keyword arguments for create_budget with the seed defaults"""
    params: dict[str, Any] = {
        "client_id": client_id,
        "title": "Customer portal",
        "hourly_rate": 100.0,
        "test_percentage": 30.0,
        "available_hours": 6.0,
    }
    params.update(overrides)
    return params


def update_params(budget: Budget, **overrides: Any) -> dict[str, Any]:
    """Keyword arguments for update_budget that resubmit the budget as persisted"""
    params: dict[str, Any] = {
        "client_id": budget.client_id,
        "title": budget.title,
        "hourly_rate": budget.hourly_rate,
        "test_percentage": budget.test_percentage,
        "available_hours": budget.available_hours,
        "project_complexity_factor": budget.project_complexity_factor,
        "stories": tree_of(budget),
    }
    params.update(overrides)
    return params


def tree_of(budget: Budget) -> list[dict[str, Any]]:
    """Submitted-tree form of a persisted budget, ids included"""
    return [
        story(
            s.title,
            [
                activity(
                    a.title,
                    a.hours,
                    complexity_factor=a.complexity_factor,
                    id=a.activity_id,
                    description=a.description,
                )
                for a in s.activities
            ],
            complexity_factor=s.complexity_factor,
            id=s.story_id,
        )
        for s in budget.stories
    ]


def story_titles(budget: Budget) -> list[str]:
    return [s.title for s in budget.stories]
