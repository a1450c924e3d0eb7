"""Shared test fixtures."""

import asyncio
from dataclasses import dataclass, field

import pytest

from nutrition_backoffice.adapters.backend_client import BackendClient
from nutrition_backoffice.config import Settings
from nutrition_backoffice.containers import AppContainer
from nutrition_backoffice.services.cache import InMemoryCache
from nutrition_backoffice.services.days import DailyNutritionService
from nutrition_backoffice.services.menus import MenuBuilderService


def grams_serving(amount: float = 100) -> dict[str, object]:
    return {"id": 10, "name": "grame", "amount": amount, "profileId": 0}


def portion_serving(amount: float = 200) -> dict[str, object]:
    return {"id": 11, "name": "portie", "amount": amount, "profileId": 1}


def make_food(**overrides: object) -> dict[str, object]:
    food: dict[str, object] = {
        "id": "food-1",
        "name": "Chicken breast",
        "itemType": "FOOD",
        "totalCalories": 200,
        "totalNutrients": {
            "proteinsInGrams": 40,
            "carbohydratesInGrams": 0,
            "fatInGrams": 4,
        },
        "servingOptions": [grams_serving()],
    }
    food.update(overrides)
    return food


def make_recipe(**overrides: object) -> dict[str, object]:
    recipe: dict[str, object] = {
        "id": "recipe-1",
        "name": "Lentil stew",
        "itemType": "RECIPE",
        "numberOfServings": 3,
        "totalCalories": 600,
        "totalNutrients": {
            "proteinsInGrams": 30,
            "carbohydratesInGrams": 90,
            "fatInGrams": 12,
        },
        "servingOptions": [grams_serving(), portion_serving()],
    }
    recipe.update(overrides)
    return recipe


@dataclass
class FakeBackendClient(BackendClient):
    """Backend client returning canned payloads and recording calls."""

    daily: dict[str, object] = field(default_factory=dict)
    user: dict[str, object] = field(default_factory=dict)
    menu: dict[str, object] = field(default_factory=dict)
    search_results: list[dict[str, object]] = field(default_factory=list)
    items: dict[str, dict[str, object]] = field(default_factory=dict)
    templates: list[dict[str, object]] = field(default_factory=list)
    user_menus: list[dict[str, object]] = field(default_factory=list)
    calls: list[tuple[str, object]] = field(default_factory=list)
    error: Exception | None = None
    delay_seconds: float = 0
    closed: bool = False

    async def get_daily_nutrition(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        await self._record("daily", (user_id, date_applied))
        return {"data": {"data": self.daily}}

    async def get_user_goals(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        await self._record("goals", (user_id, date_applied))
        return {"data": {"data": self.user}}

    async def get_user_menu_by_date(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        await self._record("menu", (user_id, date_applied))
        return {"data": self.menu}

    async def search_items(  # noqa: PLR0913
        self,
        user_id: str,
        search_term: str,
        item_type: str = "FOOD",
        only_recipes: bool = False,
        country_code: str = "RO",
    ) -> list[dict[str, object]]:
        await self._record("search", (user_id, search_term, only_recipes))
        return self.search_results

    async def get_items_by_ids(self, ids: list[str]) -> dict[str, object]:
        await self._record("items", tuple(ids))
        found = [self.items[item_id] for item_id in ids if item_id in self.items]
        return {"data": found}

    async def add_menu_template(self, payload: dict[str, object]) -> dict[str, object]:
        await self._record("add_template", payload)
        return {"data": {"id": "template-1"}}

    async def update_menu_template(
        self, menu_template_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        await self._record("update_template", (menu_template_id, payload))
        return {"data": {"id": menu_template_id}}

    async def list_menu_templates(
        self, created_by_user_id: str | None = None
    ) -> dict[str, object]:
        await self._record("list_templates", created_by_user_id)
        return {"data": self.templates}

    async def delete_menu_template(self, menu_template_id: str) -> dict[str, object]:
        await self._record("delete_template", menu_template_id)
        return {"data": {"deleted": True}}

    async def delete_menu_template_item(
        self, menu_template_id: str, item_type: str, item_id: str
    ) -> dict[str, object]:
        await self._record("delete_item", (menu_template_id, item_type, item_id))
        return {"data": {"deleted": True}}

    async def assign_menu_template(
        self,
        user_id: str,
        menu_template_id: str,
        date_applied: str,
        replace_existing: bool = True,
    ) -> dict[str, object]:
        await self._record(
            "assign", (user_id, menu_template_id, date_applied, replace_existing)
        )
        return {"data": {"assigned": True}}

    async def remove_menu_from_user(
        self, user_id: str, menu_template_id: str, date_applied: str
    ) -> dict[str, object]:
        await self._record("unassign", (user_id, menu_template_id, date_applied))
        return {"data": {"removed": True}}

    async def get_user_menus(self, user_id: str) -> dict[str, object]:
        await self._record("user_menus", user_id)
        return {"data": {"data": self.user_menus}}

    async def close(self) -> None:
        self.closed = True

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    async def _record(self, name: str, args: object) -> None:
        self.calls.append((name, args))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error


@pytest.fixture
def settings() -> Settings:
    return Settings(
        backend_basic_auth="basic-credentials",
        backend_bearer_token="bearer-token",
        admin_token="admin-token",
    )


@pytest.fixture
def backend_client() -> FakeBackendClient:
    return FakeBackendClient()


@pytest.fixture
def container(settings: Settings, backend_client: FakeBackendClient) -> AppContainer:
    cache = InMemoryCache()
    day_service = DailyNutritionService(
        client=backend_client, cache=cache, retry_attempts=0
    )
    menu_service = MenuBuilderService(
        client=backend_client, cache=cache, retry_attempts=0
    )

    async def close_resources() -> None:
        await backend_client.close()

    return AppContainer(
        settings=settings,
        backend_client=backend_client,
        day_service=day_service,
        menu_service=menu_service,
        close_resources=close_resources,
    )
