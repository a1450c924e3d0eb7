"""Menu template builder."""

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import TypeVar

import httpx

from nutrition_backoffice.adapters.backend_client import BackendClient
from nutrition_backoffice.domain.days import MenuDaySummary, PlanItemView
from nutrition_backoffice.domain.scaling import (
    PLAN_KEYS,
    PORTION_PROFILE_ID,
    MealTotals,
    ServingSelection,
)
from nutrition_backoffice.services import scaling
from nutrition_backoffice.services.cache import Cache
from nutrition_backoffice.services.retry import call_with_retry

_logger = logging.getLogger(__name__)

T = TypeVar("T")

# Ingredient fields snapshotted when a recipe is added; "carbohydateAmount" is
# the backend's spelling.
_INGREDIENT_ORIGINALS = {
    "calorieAmount": "originalCalorieAmount",
    "carbohydateAmount": "originalCarbohydrateAmount",
    "fatAmount": "originalFatAmount",
    "proteinAmount": "originalProteinAmount",
    "weight": "originalWeight",
    "macronutrientsEx": "originalMacronutrientsEx",
}


@dataclass
class MenuBuilderService:
    """Builds menu templates and keeps their serving annotations stable."""

    client: BackendClient
    cache: Cache
    item_ttl_seconds: int = 3600
    debug: bool = False
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def search(
        self,
        user_id: str,
        search_term: str,
        only_recipes: bool = False,
        country_code: str = "RO",
    ) -> list[dict[str, object]]:
        """Search catalog foods and recipes."""
        return await self._call(
            lambda: self.client.search_items(
                user_id,
                search_term,
                only_recipes=only_recipes,
                country_code=country_code,
            ),
            action="search",
        )

    async def get_item_details(self, item_id: str) -> dict[str, object] | None:
        """Return the detailed catalog item, cached per id."""
        cache_key = f"catalog:item:{item_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, dict):
            return cached

        payload = await self._call(
            lambda: self.client.get_items_by_ids([item_id]),
            action=f"get_items_by_ids:{item_id}",
        )
        detailed = _first_item(payload)
        if detailed is not None:
            self.cache.set(cache_key, detailed, ttl_seconds=self.item_ttl_seconds)
        return detailed

    async def add_item(
        self, item: dict[str, object]
    ) -> tuple[dict[str, object], ServingSelection]:
        """Enrich a search result for a plan and pick its initial serving."""
        item_id = item.get("id") or item.get("itemId") or item.get("_id")
        detailed = None
        if item_id:
            try:
                detailed = await self.get_item_details(str(item_id))
            except httpx.HTTPError:
                _logger.warning(
                    "Failed to fetch item details, using search result: item_id=%s",
                    item_id,
                    exc_info=True,
                )
        enriched = enrich_item(item, detailed)
        return enriched, default_selection(enriched)

    def build_template(
        self,
        name: str,
        plans: Mapping[str, object],
        selections: Mapping[str, ServingSelection],
        is_assignable_by_user: bool = False,
    ) -> dict[str, object]:
        """Build the template write payload.

        Selections are keyed ``"{planKey}-{index}"``. Every item carries its
        resolved original serving so later reads never re-derive it.
        """
        if not name.strip():
            raise ValueError("Menu name is required")
        template: dict[str, object] = {
            "name": name.strip(),
            "isAssignableByUser": is_assignable_by_user,
        }
        for plan_key in PLAN_KEYS:
            items = plans.get(plan_key)
            template[plan_key] = [
                change_serving(
                    ensure_original_serving(item),
                    selections.get(f"{plan_key}-{index}"),
                )
                for index, item in enumerate(items if isinstance(items, list) else [])
                if isinstance(item, Mapping)
            ]
        return template

    async def save_template(
        self, template: dict[str, object], menu_template_id: str | None = None
    ) -> dict[str, object]:
        """Create or update a template in the backend."""
        if menu_template_id:
            response = await self.client.update_menu_template(
                menu_template_id, template
            )
        else:
            response = await self.client.add_menu_template(template)
        _logger.info(
            "Saved menu template: name=%s template_id=%s",
            template.get("name"),
            menu_template_id or "new",
        )
        return response

    def template_totals(self, template: Mapping[str, object]) -> MealTotals:
        """Return per-meal and total values for a template."""
        return scaling.aggregate_meals(template)

    async def list_templates(
        self, created_by_user_id: str | None = None
    ) -> list[MenuDaySummary]:
        """Return saved templates with their item values and totals."""
        payload = await self._call(
            lambda: self.client.list_menu_templates(created_by_user_id),
            action="list_menu_templates",
        )
        return [summarise_menu(template) for template in _records(payload, "templates")]

    async def delete_template(self, menu_template_id: str) -> dict[str, object]:
        """Delete a template."""
        response = await self.client.delete_menu_template(menu_template_id)
        _logger.info("Deleted menu template: template_id=%s", menu_template_id)
        return response

    async def delete_template_item(
        self, menu_template_id: str, plan_key: str, item_id: str
    ) -> dict[str, object]:
        """Remove one item from a template plan."""
        if plan_key not in PLAN_KEYS:
            raise ValueError(f"Unknown plan: {plan_key}")
        response = await self.client.delete_menu_template_item(
            menu_template_id, plan_key, item_id
        )
        _logger.info(
            "Deleted menu template item: template_id=%s plan=%s item_id=%s",
            menu_template_id,
            plan_key,
            item_id,
        )
        return response

    async def assign_template(
        self,
        user_id: str,
        menu_template_id: str,
        day: date,
        replace_existing: bool = True,
    ) -> dict[str, object]:
        """Assign a template to a user's day."""
        response = await self.client.assign_menu_template(
            user_id,
            menu_template_id,
            day.isoformat(),
            replace_existing=replace_existing,
        )
        _logger.info(
            "Assigned menu template: template_id=%s user_id=%s day=%s",
            menu_template_id,
            user_id,
            day.isoformat(),
        )
        return response

    async def unassign_template(
        self, user_id: str, menu_template_id: str, day: date
    ) -> dict[str, object]:
        """Remove a template from a user's day."""
        response = await self.client.remove_menu_from_user(
            user_id, menu_template_id, day.isoformat()
        )
        _logger.info(
            "Unassigned menu template: template_id=%s user_id=%s day=%s",
            menu_template_id,
            user_id,
            day.isoformat(),
        )
        return response

    async def user_menus(
        self, user_id: str, menu_template_id: str | None = None
    ) -> list[MenuDaySummary]:
        """Return the menus assigned to a user, optionally for one template."""
        payload = await self._call(
            lambda: self.client.get_user_menus(user_id), action="get_user_menus"
        )
        menus = [summarise_menu(menu) for menu in _records(payload, "menus")]
        if menu_template_id is None:
            return menus
        return [menu for menu in menus if menu.template_id == menu_template_id]

    async def _call(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        return await call_with_retry(
            func,
            action=action,
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
            debug=self.debug,
        )



def enrich_item(
    item: Mapping[str, object], detailed: Mapping[str, object] | None
) -> dict[str, object]:
    """Merge catalog details into a search result and snapshot its originals."""
    enriched = {**item, **(detailed or {})}
    if enriched.get("originalCalories") is None:
        enriched["originalCalories"] = enriched.get("totalCalories")
    if enriched.get("originalNutrients") is None:
        enriched["originalNutrients"] = enriched.get("totalNutrients")
    if scaling.is_recipe(enriched):
        servings = scaling.number_of_servings(enriched)
        if servings.is_integer():
            servings = int(servings)
        enriched["numberOfServings"] = servings
        enriched["originalServings"] = servings
        ingredients = enriched.get("ingredients")
        if isinstance(ingredients, list):
            enriched["ingredients"] = [
                _snapshot_ingredient(ingredient) for ingredient in ingredients
            ]
    return ensure_original_serving(enriched)


def ensure_original_serving(item: Mapping[str, object]) -> dict[str, object]:
    """Return a copy with the original serving resolved and stored."""
    original = scaling.resolve_original_serving(item)
    resolved = dict(item)
    resolved["originalServingAmount"] = original.amount
    resolved["originalServingId"] = original.serving_id
    return resolved


def default_selection(item: Mapping[str, object]) -> ServingSelection:
    """Selection for a newly added item: one portion for recipes."""
    if scaling.is_recipe(item):
        portion = scaling.find_serving_by_profile(
            scaling.serving_options(item), PORTION_PROFILE_ID
        )
        if portion is not None:
            return ServingSelection(
                serving_id=scaling.serving_identifier(portion),
                amount=_selection_amount(portion.get("amount")),
            )
    original = scaling.resolve_original_serving(item)
    return ServingSelection(serving_id=original.serving_id, amount=original.amount)


def initial_selection(item: Mapping[str, object]) -> ServingSelection:
    """Restore the selection of an item loaded from a saved template."""
    changed = item.get("changedServing")
    if not isinstance(changed, Mapping):
        original = scaling.resolve_original_serving(item)
        return ServingSelection(serving_id=original.serving_id, amount=original.amount)

    amount = _selection_amount(changed.get("value"))
    serving = changed.get("serving")
    if isinstance(serving, Mapping):
        return ServingSelection(
            serving_id=scaling.serving_identifier(serving), amount=amount
        )

    # Older templates stored a profile id or an identifier string.
    legacy_id = changed.get("servingId")
    if legacy_id is None:
        return ServingSelection(serving_id=None, amount=amount)
    options = scaling.serving_options(item)
    if isinstance(legacy_id, int) and not isinstance(legacy_id, bool):
        found = scaling.find_serving_by_profile(options, legacy_id)
    else:
        found = scaling.find_serving_by_identifier(options, str(legacy_id))
    serving_id = scaling.serving_identifier(found) if found else str(legacy_id)
    return ServingSelection(serving_id=serving_id, amount=amount)


def change_serving(
    item: Mapping[str, object], selection: ServingSelection | None
) -> dict[str, object]:
    """Return a copy annotated with the selected serving, when it exists."""
    annotated = dict(item)
    if selection is None or selection.amount is None or selection.serving_id is None:
        return annotated
    serving = scaling.find_serving_by_identifier(
        scaling.serving_options(item), selection.serving_id
    )
    if serving is not None:
        annotated["changedServing"] = {
            "value": selection.amount,
            "serving": dict(serving),
        }
    return annotated


def plan_item_view(item: Mapping[str, object]) -> PlanItemView:
    """Scaled display values for one template item."""
    original = scaling.resolve_original_serving_amount(item)
    selected = original
    changed = item.get("changedServing")
    if isinstance(changed, Mapping) and changed.get("value"):
        selected = scaling.to_number(changed["value"])
    return PlanItemView(
        name=str(item.get("name") or "Item"),
        is_recipe=scaling.is_recipe(item),
        selected_amount=selected,
        original_amount=original,
        scaled=scaling.scale_plan_item(item),
    )


def summarise_menu(template: Mapping[str, object]) -> MenuDaySummary:
    """Per-item views and totals of a menu template."""
    items: dict[str, list[PlanItemView]] = {}
    for plan_key in PLAN_KEYS:
        plan = template.get(plan_key)
        items[plan_key] = [
            plan_item_view(item)
            for item in (plan if isinstance(plan, list) else [])
            if isinstance(item, Mapping)
        ]
    template_id = (
        template.get("menuTemplateId") or template.get("id") or template.get("_id")
    )
    date_applied = template.get("dateApplied")
    return MenuDaySummary(
        name=str(template.get("name") or ""),
        items=items,
        totals=scaling.aggregate_meals(template),
        template_id=str(template_id) if template_id else None,
        date_applied=str(date_applied) if date_applied else None,
    )


def _snapshot_ingredient(ingredient: object) -> object:
    if not isinstance(ingredient, Mapping):
        return ingredient
    snapshot = dict(ingredient)
    for field_name, original_name in _INGREDIENT_ORIGINALS.items():
        if snapshot.get(original_name) is None:
            snapshot[original_name] = ingredient.get(field_name)
    return snapshot


def _first_item(payload: object) -> dict[str, object] | None:
    if isinstance(payload, list):
        candidates = payload
    elif isinstance(payload, Mapping):
        candidates = payload.get("data") or payload.get("items") or []
    else:
        return None
    if isinstance(candidates, list) and candidates:
        first = candidates[0]
        if isinstance(first, dict):
            return first
    return None


def _selection_amount(value: object) -> float | None:
    if value is None or value == "":
        return None
    return scaling.to_number(value)


def _records(payload: object, key: str) -> list[Mapping[str, object]]:
    """Entries of a list response, bare or under ``data`` or ``key``."""
    records: object = payload
    if isinstance(payload, Mapping):
        records = payload.get("data")
        if isinstance(records, Mapping):
            records = records.get("data")
        if not isinstance(records, list):
            records = payload.get(key)
    if not isinstance(records, list):
        return []
    return [record for record in records if isinstance(record, Mapping)]
