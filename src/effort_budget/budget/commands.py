"""
Budget Module Commands - caller-submitted intentions

Commands carry what a user submitted: a budget header plus a full
desired story/activity tree. Nodes that already exist carry their id;
new nodes carry none (or an id the store does not know, which is treated
the same way).

Field names accept both snake_case and camelCase, so payloads produced by
the web front end ("hourlyRate", "complexityFactor") validate unchanged.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

_payload_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActivityInput(BaseModel):
    """Submitted activity (leaf of the tree)"""

    model_config = _payload_config

    id: str | None = None
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = Field(default=None, max_length=5000)
    hours: float = Field(..., gt=0)
    complexity_factor: float | None = None


class StoryInput(BaseModel):
    """Submitted story with its nested activities"""

    model_config = _payload_config

    id: str | None = None
    title: str = Field(..., min_length=1, max_length=500)
    complexity_factor: float | None = None
    activities: list[ActivityInput] = Field(default_factory=list)


class BudgetPayload(BaseModel):
    """Fields shared by budget creation and update"""

    model_config = _payload_config

    client_id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1, max_length=500)
    hourly_rate: float = Field(..., gt=0)
    test_percentage: float = Field(..., ge=0, le=100)
    available_hours: float = Field(..., gt=0)
    stories: list[StoryInput] = Field(default_factory=list)


class CreateBudget(BudgetPayload):
    """
    Create a budget with its initial tree

    The project complexity factor is stored but, by default, not applied
    to the totals on creation (see EstimationPolicy).
    """

    project_complexity_factor: float | None = None


class UpdateBudget(BudgetPayload):
    """
    Replace a budget's header and tree

    The submitted tree is the complete desired state: stories and
    activities absent from it are deleted.
    """

    project_complexity_factor: float


class CreateClient(BaseModel):
    """Register a client"""

    model_config = _payload_config

    name: str = Field(..., min_length=1, max_length=200)
    email: str | None = Field(default=None, max_length=320)
    logo_url: str | None = None

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value

    @field_validator("email")
    @classmethod
    def empty_email_is_none(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            return None
        return value.strip() if value else value


class UpdateClient(CreateClient):
    """
    Update a client

    A missing logo_url keeps the stored logo.
    """

    pass


class UpdateSettings(BaseModel):
    """Change the defaults offered to new budgets (None = unchanged)"""

    model_config = _payload_config

    default_hourly_rate: float | None = Field(default=None, gt=0)
    default_test_percentage: float | None = Field(default=None, ge=0, le=100)
    default_available_hours: float | None = Field(default=None, gt=0)


