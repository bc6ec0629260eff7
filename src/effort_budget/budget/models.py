"""
Budget Domain Models - persisted entities and computed totals

A Budget owns Stories, a Story owns Activities (composition: deleting a
parent deletes its children). A Budget references a Client without
owning it.

Key concepts:
- Complexity factor: effort multiplier at activity, story and project level
- Derived totals: total_hours, total_test_hours, total_value and
  estimated_days are recomputed on every write, never set directly
"""

from datetime import datetime

from pydantic import BaseModel, Field


class ClientRef(BaseModel):
    """Minimal client projection embedded in budgets and listings"""

    client_id: str
    name: str
    logo_url: str | None = None


class Client(BaseModel):
    """
    Customer a budget is addressed to

    Attributes:
        client_id: Unique identifier
        name: Display name (non-blank)
        email: Optional contact email
        logo_url: Optional public URL of the uploaded logo
    """

    client_id: str
    name: str = Field(min_length=1)
    email: str | None = None
    logo_url: str | None = None
    created_at: datetime
    updated_at: datetime


class Activity(BaseModel):
    """Leaf work item with an hours estimate"""

    activity_id: str
    story_id: str
    title: str
    description: str | None = None
    hours: float = Field(gt=0)
    complexity_factor: float = Field(default=1.0, ge=1)
    created_at: datetime

    def effective_hours(self) -> float:
        """Hours after the activity's own complexity multiplier"""
        return self.hours * self.complexity_factor


class Story(BaseModel):
    """Group of activities sharing a complexity multiplier"""

    story_id: str
    budget_id: str
    title: str
    complexity_factor: float = Field(default=1.0, ge=1)
    activities: list[Activity] = Field(default_factory=list)
    created_at: datetime

    def story_hours(self) -> float:
        """Sum of effective activity hours, before the story multiplier"""
        return sum(activity.effective_hours() for activity in self.activities)

    def story_total(self) -> float:
        return self.story_hours() * self.complexity_factor


class Budget(BaseModel):
    """
    Project budget with its full story/activity tree

    Attributes:
        budget_id: Unique identifier
        title: Project title shown on the proposal
        user_id: Owner (immutable after creation)
        client_id: Referenced client
        client: Client projection (id, name, logo)
        hourly_rate: Currency per hour
        test_percentage: Percent of computed hours added as testing effort
        available_hours: Productive hours per day
        project_complexity_factor: Project-level multiplier
        total_hours: Sum of story totals (before project multiplier)
        total_test_hours: Test effort in hours
        total_value: Price of the whole project
        estimated_days: Working days needed
        stories: Stories in creation order
    """

    budget_id: str
    title: str
    user_id: str
    client_id: str
    client: ClientRef | None = None
    hourly_rate: float = Field(gt=0)
    test_percentage: float = Field(ge=0, le=100)
    available_hours: float = Field(gt=0)
    project_complexity_factor: float = Field(default=1.0, ge=1)
    total_hours: float = Field(default=0.0, ge=0)
    total_test_hours: float = Field(default=0.0, ge=0)
    total_value: float = Field(default=0.0, ge=0)
    estimated_days: int = Field(default=0, ge=0)
    stories: list[Story] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

    def get_story(self, story_id: str) -> Story | None:
        for story in self.stories:
            if story.story_id == story_id:
                return story
        return None

    def activity_count(self) -> int:
        return sum(len(story.activities) for story in self.stories)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "budget_id": "budget-001",
                    "title": "Customer portal",
                    "user_id": "user-1",
                    "client_id": "client-1",
                    "client": {"client_id": "client-1", "name": "Acme", "logo_url": None},
                    "hourly_rate": 100.0,
                    "test_percentage": 30.0,
                    "available_hours": 6.0,
                    "project_complexity_factor": 1.0,
                    "total_hours": 30.0,
                    "total_test_hours": 9.0,
                    "total_value": 3900.0,
                    "estimated_days": 7,
                    "stories": [],
                    "created_at": "2025-01-15T10:00:00Z",
                    "updated_at": "2025-01-15T10:00:00Z",
                }
            ]
        }
    }


class BudgetSummary(BaseModel):
    """
    Lightweight budget row for listings

    Carries the client projection and the headline numbers only.
    """

    budget_id: str
    title: str
    user_id: str
    client: ClientRef
    total_hours: float
    total_value: float
    estimated_days: int
    created_at: datetime


class EstimateTotals(BaseModel):
    """
    Output of the estimation calculator

    total_hours, total_test_hours, total_value and estimated_days are the
    persisted derived fields; the other two are intermediate values kept
    for display and auditing.
    """

    total_hours: float
    hours_with_project_complexity: float
    total_test_hours: float
    total_hours_with_tests: float
    total_value: float
    estimated_days: int


class Settings(BaseModel):
    """Process-wide defaults offered when a new budget is drafted"""

    default_hourly_rate: float = Field(gt=0)
    default_test_percentage: float = Field(ge=0, le=100)
    default_available_hours: float = Field(gt=0)
    updated_at: datetime | None = None
