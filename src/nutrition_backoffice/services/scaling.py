"""Serving resolution, nutrient scaling and aggregation for catalog items.

Items are the JSON objects returned by the product backend (camelCase keys).
Nothing here raises for malformed input: missing serving data falls back to
the default unit, missing amounts pass the stored values through unscaled and
missing nutrient fields count as zero.
"""

import math
from collections.abc import Iterable, Mapping

from nutrition_backoffice.domain.scaling import (
    DEFAULT_GRAM_UNIT_NAMES,
    DEFAULT_SERVING_GRAMS,
    GENERIC_SERVING_NAME,
    GRAMS_PROFILE_ID,
    MEAL_KEYS,
    NUTRIENT_KEYS,
    PORTION_PROFILE_ID,
    RECIPE_ITEM_TYPES,
    MacroTotals,
    MealTotals,
    NutrientProfile,
    OriginalServing,
    ScaledNutrition,
)


def is_recipe(item: object) -> bool:
    """Return True when the item is a recipe rather than a plain food."""
    if not isinstance(item, Mapping):
        return False
    item_type = item.get("itemType") or item.get("type") or ""
    return str(item_type).upper() in RECIPE_ITEM_TYPES


def serving_identifier(serving: object) -> str:
    """Return the selection key for a serving option.

    Servings sharing an id collide when only their name casing differs.
    """
    if not isinstance(serving, Mapping):
        return ""
    name = serving.get("name") or serving.get("innerName") or ""
    if serving.get("id") is not None:
        return f"{serving['id']}_{name}"
    return str(name)


def find_serving_by_identifier(
    options: object, identifier: str | None
) -> dict[str, object] | None:
    """Return the serving option whose identifier matches."""
    if not identifier:
        return None
    for serving in _as_servings(options):
        if serving_identifier(serving) == identifier:
            return serving
    return None


def find_serving_by_profile(
    options: object, profile_id: int
) -> dict[str, object] | None:
    """Return the first serving option carrying the profile id."""
    servings = _as_servings(options)
    for serving in servings:
        if _has_profile(serving, profile_id):
            return serving
    return None


def resolve_default_serving(options: object) -> dict[str, object] | None:
    """Return the serving the item's stored values are most likely based on."""
    servings = _as_servings(options)
    if not servings:
        return None
    grams = find_serving_by_profile(servings, GRAMS_PROFILE_ID)
    if grams is not None:
        return grams
    for serving in servings:
        name = str(serving.get("name") or "").lower()
        if name in DEFAULT_GRAM_UNIT_NAMES:
            return serving
    return servings[0]


def serving_options(item: object) -> list[dict[str, object]]:
    """Return the item's serving options, reading the legacy key as well."""
    if not isinstance(item, Mapping):
        return []
    return _as_servings(item.get("servingOptions")) or _as_servings(item.get("serving"))


def number_of_servings(item: Mapping[str, object]) -> float:
    """Return how many servings a recipe yields, at least one."""
    return (
        _positive(item.get("numberOfServings"))
        or _positive(item.get("originalServings"))
        or 1.0
    )


def resolve_original_serving(item: object) -> OriginalServing:
    """Resolve the reference amount and serving behind the stored values.

    A stored positive ``originalServingAmount`` always wins so a resolved item
    keeps its reference across catalog changes.
    """
    if not isinstance(item, Mapping):
        return OriginalServing(amount=float(DEFAULT_SERVING_GRAMS), serving_id=None)

    stored = _positive(item.get("originalServingAmount"))
    if stored is not None:
        stored_id = item.get("originalServingId")
        return OriginalServing(
            amount=stored,
            serving_id=str(stored_id) if stored_id is not None else None,
        )

    options = serving_options(item)
    default = resolve_default_serving(options)
    default_id = serving_identifier(default) if default is not None else None

    if not is_recipe(item):
        return OriginalServing(amount=_serving_amount(default), serving_id=default_id)

    # Recipe totals cover every serving the recipe yields.
    servings = number_of_servings(item)
    portion = find_serving_by_profile(options, PORTION_PROFILE_ID)
    portion_amount = _positive(portion.get("amount")) if portion else None
    if portion_amount is not None:
        return OriginalServing(
            amount=portion_amount * servings,
            serving_id=serving_identifier(portion),
        )

    nutrients = item.get("totalNutrients")
    if isinstance(nutrients, Mapping):
        total_weight = _positive(nutrients.get("totalQuantity")) or _positive(
            nutrients.get("weightAfterCooking")
        )
        if total_weight is not None:
            return OriginalServing(amount=total_weight, serving_id=default_id)

    return OriginalServing(
        amount=_serving_amount(default) * servings, serving_id=default_id
    )


def resolve_original_serving_amount(item: object) -> float:
    """Return the reference amount behind the item's stored values."""
    return resolve_original_serving(item).amount


def safe_nutrients(nutrients: object) -> NutrientProfile:
    """Coerce a backend nutrient mapping, treating missing fields as zero."""
    if not isinstance(nutrients, Mapping):
        return NutrientProfile()
    return NutrientProfile(
        **{
            attribute: to_number(nutrients.get(backend_key))
            for attribute, backend_key in NUTRIENT_KEYS.items()
        }
    )


def scale(
    item: object, selected_amount: object, original_amount: object
) -> ScaledNutrition:
    """Scale the item's stored values from the original to the selected amount.

    Foods scale by the plain ratio of the two amounts. Recipes convert the
    selected amount into a number of servings through the per-serving weight
    and scale by the share of all servings. Calories are rounded half up,
    nutrients are left unrounded.
    """
    item = item if isinstance(item, Mapping) else {}
    calories = to_number(item.get("originalCalories")) or to_number(
        item.get("totalCalories")
    )
    nutrients = item.get("originalNutrients")
    if not isinstance(nutrients, Mapping):
        nutrients = item.get("totalNutrients")
    profile = safe_nutrients(nutrients)

    original = _positive(original_amount)
    selected = _positive(selected_amount)
    if original is None or selected is None:
        return ScaledNutrition(calories=calories, nutrients=profile)

    ratio = _scale_ratio(item, selected, original)
    scaled_calories = calories * ratio
    scaled = {
        attribute: getattr(profile, attribute) * ratio for attribute in NUTRIENT_KEYS
    }
    # Extreme amounts can overflow; keep the stored values instead.
    if not all(math.isfinite(value) for value in (scaled_calories, *scaled.values())):
        return ScaledNutrition(calories=calories, nutrients=profile)
    return ScaledNutrition(
        calories=round_half_up(scaled_calories), nutrients=NutrientProfile(**scaled)
    )


def scale_applied_quantity(applied_item: object) -> ScaledNutrition:
    """Scale a logged day item by its ``quantity``.

    Exercise entries are never scaled.
    """
    if not isinstance(applied_item, Mapping):
        return ScaledNutrition(calories=0)
    exercise = applied_item.get("exercise")
    if isinstance(exercise, Mapping):
        return ScaledNutrition(calories=to_number(exercise.get("caloriesBurnt")))

    food = applied_item.get("food")
    catalog = food if isinstance(food, Mapping) else applied_item
    original = _positive(
        applied_item.get("originalServingAmount")
    ) or resolve_original_serving_amount(catalog)
    return scale(catalog, applied_item.get("quantity"), original)


def scale_plan_item(item: object) -> ScaledNutrition:
    """Scale a menu template item by its ``changedServing`` value."""
    if not isinstance(item, Mapping):
        return ScaledNutrition(calories=0)
    original = resolve_original_serving_amount(item)
    selected: object = original
    changed = item.get("changedServing")
    if isinstance(changed, Mapping) and changed.get("value"):
        selected = changed["value"]
    return scale(item, selected, original)


def scale_item(item: object) -> ScaledNutrition:
    """Scale a day log item or a menu template item."""
    if isinstance(item, Mapping) and (
        isinstance(item.get("food"), Mapping)
        or isinstance(item.get("exercise"), Mapping)
    ):
        return scale_applied_quantity(item)
    return scale_plan_item(item)


def aggregate(items: object) -> MacroTotals:
    """Sum the headline values of every scaled item."""
    scaled = [scale_item(item) for item in _as_list(items)]
    return MacroTotals(
        calories=_finite_sum((entry.calories for entry in scaled), exact=True),
        proteins_in_grams=_finite_sum(
            (entry.nutrients.proteins_in_grams for entry in scaled), exact=True
        ),
        carbohydrates_in_grams=_finite_sum(
            (entry.nutrients.carbohydrates_in_grams for entry in scaled), exact=True
        ),
        fat_in_grams=_finite_sum(
            (entry.nutrients.fat_in_grams for entry in scaled), exact=True
        ),
    )


def aggregate_meals(daily: object) -> MealTotals:
    """Return per-meal subtotals and their grand total.

    Accepts a day payload (``breakfast``...) or a menu template
    (``breakfastPlan``...).
    """
    daily = daily if isinstance(daily, Mapping) else {}
    per_meal: dict[str, MacroTotals] = {}
    for meal in MEAL_KEYS:
        items = daily.get(meal)
        if items is None:
            items = daily.get(f"{meal}Plan")
        per_meal[meal] = aggregate(items)

    subtotals = list(per_meal.values())
    total = MacroTotals(
        calories=_finite_sum(entry.calories for entry in subtotals),
        proteins_in_grams=_finite_sum(entry.proteins_in_grams for entry in subtotals),
        carbohydrates_in_grams=_finite_sum(
            entry.carbohydrates_in_grams for entry in subtotals
        ),
        fat_in_grams=_finite_sum(entry.fat_in_grams for entry in subtotals),
    )
    return MealTotals(total=total, per_meal=per_meal)


def round_totals(totals: MacroTotals) -> MacroTotals:
    """Round every headline value for display."""
    return MacroTotals(
        calories=round_half_up(totals.calories),
        proteins_in_grams=round_half_up(totals.proteins_in_grams),
        carbohydrates_in_grams=round_half_up(totals.carbohydrates_in_grams),
        fat_in_grams=round_half_up(totals.fat_in_grams),
    )


def goal_percent(value: object, goal: object) -> int | None:
    """Return the value as a whole percentage of the goal, None without a goal."""
    target = to_number(goal)
    if not target:
        return None
    return round_half_up(to_number(value) / target * 100)


def round_half_up(value: float) -> int:
    """Round to the nearest whole number with halves rounding up, 0 if not finite."""
    try:
        number = float(value)
    except OverflowError:
        return 0
    if not math.isfinite(number):
        return 0
    return math.floor(number + 0.5)


def to_number(value: object) -> float:
    """Coerce a backend value to a finite float, 0 when it isn't numeric."""
    if isinstance(value, bool) or value is None:
        return 0.0
    if not isinstance(value, int | float | str):
        return 0.0
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def _finite_sum(values: Iterable[float], exact: bool = False) -> float:
    try:
        total = float(math.fsum(values) if exact else sum(values))
    except OverflowError:
        return 0.0
    return total if math.isfinite(total) else 0.0


def _scale_ratio(
    item: Mapping[str, object], selected: float, original: float
) -> float:
    if not is_recipe(item):
        return selected / original
    servings = number_of_servings(item)
    per_serving_weight = _per_serving_weight(item, original, servings)
    if per_serving_weight > 0:
        return (selected / per_serving_weight) / servings
    return selected / original


def _per_serving_weight(
    item: Mapping[str, object], original: float, servings: float
) -> float:
    options = serving_options(item)
    portion = find_serving_by_profile(options, PORTION_PROFILE_ID)
    if portion is not None:
        return to_number(portion.get("amount"))
    # Skip the generic gram unit, it is never "one serving" of a recipe.
    for serving in options:
        if not _is_generic_serving(serving):
            return _positive(serving.get("amount")) or original / servings
    return original / servings


def _is_generic_serving(serving: Mapping[str, object]) -> bool:
    if _has_profile(serving, GRAMS_PROFILE_ID):
        return True
    name = str(serving.get("name") or "").lower()
    inner_name = str(serving.get("innerName") or "").lower()
    return GENERIC_SERVING_NAME in {name, inner_name}


def _has_profile(serving: Mapping[str, object], profile_id: int) -> bool:
    value = serving.get("profileId")
    return not isinstance(value, bool) and value == profile_id


def _serving_amount(serving: Mapping[str, object] | None) -> float:
    if serving is None:
        return float(DEFAULT_SERVING_GRAMS)
    return _positive(serving.get("amount")) or float(DEFAULT_SERVING_GRAMS)


def _as_list(value: object) -> list[object]:
    if isinstance(value, list | tuple):
        return list(value)
    return []


def _as_servings(value: object) -> list[dict[str, object]]:
    return [serving for serving in _as_list(value) if isinstance(serving, Mapping)]


def _positive(value: object) -> float | None:
    number = to_number(value)
    return number if number > 0 else None
