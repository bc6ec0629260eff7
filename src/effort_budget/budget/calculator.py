"""
Estimation Calculator - effort, cost and schedule from a budget tree

Pure function, no I/O, no shared state: safe to call from anywhere.
The steps run in a fixed order and use plain floats; the only rounding
is the final ceiling on days, so the same tree always yields the same
totals regardless of where it is computed.

Fun fact: the "ceil" in estimated days is why a 6.1-hour job still
costs you a whole second day - calendars don't do fractions.
"""

import math
from collections.abc import Iterable, Sequence
from typing import Protocol

from effort_budget.budget.models import EstimateTotals
from effort_budget.kernel.errors import ValidationFailed


class EstimableActivity(Protocol):
    hours: float
    complexity_factor: float | None


class EstimableStory(Protocol):
    complexity_factor: float | None

    @property
    def activities(self) -> Sequence[EstimableActivity]: ...


def _factor(value: float | None) -> float:
    # Missing or zero factors count as the multiplicative identity
    return value or 1


def activity_effective_hours(activity: EstimableActivity) -> float:
    return activity.hours * _factor(activity.complexity_factor)


def story_total_hours(story: EstimableStory) -> float:
    """Story hours after both activity and story multipliers"""
    story_hours = sum(activity_effective_hours(a) for a in story.activities)
    return story_hours * _factor(story.complexity_factor)


def calculate_estimate(
    stories: Iterable[EstimableStory],
    *,
    hourly_rate: float,
    test_percentage: float,
    available_hours: float,
    project_complexity_factor: float | None = None,
    apply_project_complexity: bool = True,
) -> EstimateTotals:
    """
    Compute totals for a story tree

    Works on submitted StoryInput trees and persisted Story trees alike.

    Args:
        stories: Stories, each exposing complexity_factor and activities
        hourly_rate: Price per hour
        test_percentage: Test effort as percent of (project-adjusted) hours
        available_hours: Productive hours per day, must be > 0
        project_complexity_factor: Project-level multiplier (None = 1)
        apply_project_complexity: When False the project multiplier is
            skipped, which is how budgets are priced on creation

    Returns:
        EstimateTotals

    Raises:
        ValidationFailed: If available_hours is not positive

    Example:
        One activity of 10h at factor 1.5 in a story at factor 2, 30% tests,
        rate 100, 6h/day -> 30h, 9 test hours, value 3900, 7 days.
    """
    if available_hours is None or available_hours <= 0:
        raise ValidationFailed(
            f"Available hours per day must be positive, got {available_hours}"
        )

    total_hours = sum(story_total_hours(story) for story in stories)

    if apply_project_complexity:
        hours_with_project_complexity = total_hours * _factor(project_complexity_factor)
    else:
        hours_with_project_complexity = total_hours

    total_test_hours = hours_with_project_complexity * test_percentage / 100
    total_hours_with_tests = hours_with_project_complexity + total_test_hours
    total_value = total_hours_with_tests * hourly_rate
    estimated_days = math.ceil(total_hours_with_tests / available_hours)

    return EstimateTotals(
        total_hours=total_hours,
        hours_with_project_complexity=hours_with_project_complexity,
        total_test_hours=total_test_hours,
        total_hours_with_tests=total_hours_with_tests,
        total_value=total_value,
        estimated_days=estimated_days,
    )
