"""
Proposal summary - plain data handed to the proposal renderer

The renderer (PDF, HTML, whatever) receives numbers and strings only;
nothing in here knows about layout.
"""

from datetime import date

from pydantic import BaseModel

from effort_budget.budget.models import Budget
from effort_budget.budget.schedule import describe_duration, estimate_delivery_date
from effort_budget.kernel.config import EstimationPolicy


class ProposalActivityLine(BaseModel):
    title: str
    description: str | None = None
    hours: float


class ProposalStoryLine(BaseModel):
    title: str
    hours: float
    activities: list[ProposalActivityLine]


class ProposalSummary(BaseModel):
    """Everything a client-facing proposal shows"""

    budget_id: str
    title: str
    client_name: str
    client_logo_url: str | None = None
    stories: list[ProposalStoryLine]
    total_hours: float
    total_test_hours: float
    total_value: float
    estimated_days: int
    duration_label: str
    delivery_date: date | None = None


def build_proposal(
    budget: Budget,
    start: date | None = None,
    policy: EstimationPolicy | None = None,
) -> ProposalSummary:
    """
    Summarise a persisted budget for rendering

    Story hours include activity and story multipliers; activity hours
    include the activity multiplier.

    Args:
        budget: Budget with its tree loaded
        start: First working day, enables delivery_date
        policy: Week/month lengths for the duration label
    """
    stories = [
        ProposalStoryLine(
            title=story.title,
            hours=story.story_total(),
            activities=[
                ProposalActivityLine(
                    title=activity.title,
                    description=activity.description,
                    hours=activity.effective_hours(),
                )
                for activity in story.activities
            ],
        )
        for story in budget.stories
    ]

    return ProposalSummary(
        budget_id=budget.budget_id,
        title=budget.title,
        client_name=budget.client.name if budget.client else "",
        client_logo_url=budget.client.logo_url if budget.client else None,
        stories=stories,
        total_hours=budget.total_hours,
        total_test_hours=budget.total_test_hours,
        total_value=budget.total_value,
        estimated_days=budget.estimated_days,
        duration_label=describe_duration(budget.estimated_days, policy),
        delivery_date=estimate_delivery_date(budget.estimated_days, start) if start else None,
    )
