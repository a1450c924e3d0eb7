"""Domain models for serving scaling and nutrient totals."""

from dataclasses import dataclass, field

GRAMS_PROFILE_ID = 0
PORTION_PROFILE_ID = 1
DEFAULT_GRAM_UNIT_NAMES = frozenset({"g", "gram", "grame", "gramm", "ml"})
GENERIC_SERVING_NAME = "grame"
DEFAULT_SERVING_GRAMS = 100
RECIPE_ITEM_TYPES = frozenset({"RECIPE", "RECIPES"})

MEAL_KEYS = ("breakfast", "lunch", "dinner", "snack")
PLAN_KEYS = ("breakfastPlan", "lunchPlan", "dinnerPlan", "snackPlan")

# Backend key for each nutrient field, in display order.
NUTRIENT_KEYS = {
    "proteins_in_grams": "proteinsInGrams",
    "carbohydrates_in_grams": "carbohydratesInGrams",
    "fat_in_grams": "fatInGrams",
    "cholesterol": "cholesterol",
    "fibers": "fibers",
    "non_saturated_fat": "nonSaturatedFat",
    "saturated_fat": "saturatedFat",
    "sodium": "sodium",
    "sugar": "sugar",
}


@dataclass(frozen=True)
class NutrientProfile:
    """Nutrient amounts for a quantity of food."""

    proteins_in_grams: float = 0.0
    carbohydrates_in_grams: float = 0.0
    fat_in_grams: float = 0.0
    cholesterol: float = 0.0
    fibers: float = 0.0
    non_saturated_fat: float = 0.0
    saturated_fat: float = 0.0
    sodium: float = 0.0
    sugar: float = 0.0

    def to_payload(self) -> dict[str, float]:
        """Render the profile with backend field names."""
        return {
            backend_key: getattr(self, attribute)
            for attribute, backend_key in NUTRIENT_KEYS.items()
        }


@dataclass(frozen=True)
class ScaledNutrition:
    """Calories and nutrients for a requested amount of an item."""

    calories: float
    nutrients: NutrientProfile = field(default_factory=NutrientProfile)


@dataclass(frozen=True)
class MacroTotals:
    """Headline totals shown for meals and days."""

    calories: float = 0.0
    proteins_in_grams: float = 0.0
    carbohydrates_in_grams: float = 0.0
    fat_in_grams: float = 0.0


@dataclass(frozen=True)
class MealTotals:
    """Day or template totals with a per-meal breakdown."""

    total: MacroTotals
    per_meal: dict[str, MacroTotals]


@dataclass(frozen=True)
class OriginalServing:
    """Reference amount the stored nutrition values correspond to."""

    amount: float
    serving_id: str | None


@dataclass(frozen=True)
class ServingSelection:
    """Serving unit and amount chosen for a plan item."""

    serving_id: str | None
    amount: float | None
