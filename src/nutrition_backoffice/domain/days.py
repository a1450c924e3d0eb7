"""Domain models for day summaries and menu views."""

from dataclasses import dataclass
from datetime import date

from nutrition_backoffice.domain.scaling import MacroTotals, MealTotals, ScaledNutrition


@dataclass(frozen=True)
class GoalProgress:
    """Progress of one headline value towards the user's goal."""

    label: str
    value: float
    goal: float
    percent: int | None


@dataclass(frozen=True)
class PlanItemView:
    """Menu item with its scaled values."""

    name: str
    is_recipe: bool
    selected_amount: float
    original_amount: float
    scaled: ScaledNutrition


@dataclass(frozen=True)
class MenuDaySummary:
    """Menu template, or a template assigned to a user's day."""

    name: str
    items: dict[str, list[PlanItemView]]
    totals: MealTotals
    template_id: str | None = None
    date_applied: str | None = None


@dataclass(frozen=True)
class DaySummary:
    """Everything shown for a user's day."""

    user_id: str
    day: date
    totals: MealTotals
    rounded_totals: MacroTotals
    goals: MacroTotals
    progress: list[GoalProgress]
    exercise_calories: float
    water_total_ml: float
    meal_photos: dict[str, str | None]
    menu: MenuDaySummary | None = None
