"""
Estimation Policy - tunable parameters for budget estimation

The policy carries the numbers that are configuration rather than
algorithm: the allowed complexity multipliers, the defaults offered to
new budgets, and the switch deciding whether the project-level complexity
factor is applied when a budget is first created.
"""

from pydantic import BaseModel, Field, field_validator

COMPLEXITY_FACTORS: tuple[float, ...] = (1.0, 1.2, 1.5, 2.0)


class EstimationPolicy(BaseModel):
    """
    Estimation parameters

    The defaults mirror the seed values of the settings row: 100 per hour,
    30% test effort, 6 productive hours per day.
    """

    allowed_complexity_factors: tuple[float, ...] = Field(
        default=COMPLEXITY_FACTORS,
        min_length=1,
        description="Multipliers accepted at activity, story and project level",
    )

    apply_project_complexity_on_create: bool = Field(
        default=False,
        description=(
            "Whether create_budget multiplies total hours by the project "
            "complexity factor (updates always do)"
        ),
    )

    default_hourly_rate: float = Field(default=100.0, gt=0)
    default_test_percentage: float = Field(default=30.0, ge=0, le=100)
    default_available_hours: float = Field(default=6.0, gt=0)

    max_test_percentage: float = Field(
        default=100.0,
        gt=0,
        description="Upper bound for a budget's test percentage",
    )

    business_days_per_week: int = Field(default=5, ge=1, le=7)
    business_days_per_month: int = Field(default=20, ge=1, le=31)

    @field_validator("allowed_complexity_factors")
    @classmethod
    def factors_are_multipliers(cls, value: tuple[float, ...]) -> tuple[float, ...]:
        if any(factor < 1 for factor in value):
            raise ValueError("complexity factors must be >= 1")
        return tuple(sorted(set(value)))

    def is_allowed_factor(self, value: float) -> bool:
        """Check a factor against the allowed set with float tolerance"""
        return any(abs(value - allowed) < 1e-9 for allowed in self.allowed_complexity_factors)
