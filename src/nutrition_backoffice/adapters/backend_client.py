"""Product backend API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class BackendClient(Protocol):
    """Interface for the product backend's REST API."""

    async def get_daily_nutrition(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Return the items a user logged on a day."""

    async def get_user_goals(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Return the user's data and nutrition goals for a day."""

    async def get_user_menu_by_date(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Return the menu assigned to the user for a day."""

    async def search_items(  # noqa: PLR0913
        self,
        user_id: str,
        search_term: str,
        item_type: str = "FOOD",
        only_recipes: bool = False,
        country_code: str = "RO",
    ) -> list[dict[str, object]]:
        """Search the food and recipe catalog."""

    async def get_items_by_ids(self, ids: list[str]) -> dict[str, object]:
        """Return detailed catalog items by id."""

    async def add_menu_template(self, payload: dict[str, object]) -> dict[str, object]:
        """Create a menu template."""

    async def update_menu_template(
        self, menu_template_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        """Update an existing menu template."""

    async def list_menu_templates(
        self, created_by_user_id: str | None = None
    ) -> dict[str, object]:
        """Return menu templates, optionally only those one nutritionist made."""

    async def delete_menu_template(self, menu_template_id: str) -> dict[str, object]:
        """Delete a menu template."""

    async def delete_menu_template_item(
        self, menu_template_id: str, item_type: str, item_id: str
    ) -> dict[str, object]:
        """Remove one item from a template plan."""

    async def assign_menu_template(
        self,
        user_id: str,
        menu_template_id: str,
        date_applied: str,
        replace_existing: bool = True,
    ) -> dict[str, object]:
        """Assign a template to a user for a day."""

    async def remove_menu_from_user(
        self, user_id: str, menu_template_id: str, date_applied: str
    ) -> dict[str, object]:
        """Unassign a template from a user's day."""

    async def get_user_menus(self, user_id: str) -> dict[str, object]:
        """Return the menus assigned to a user."""


@dataclass
class HttpxBackendClient(BackendClient):
    """HTTPX-backed product backend client."""

    base_url: str
    basic_auth: str
    http_client: httpx.AsyncClient
    bearer_token: str | None = None
    timeout_seconds: float = 15

    @classmethod
    def create(
        cls,
        base_url: str,
        basic_auth: str,
        bearer_token: str | None = None,
        timeout_seconds: float = 15,
    ) -> "HttpxBackendClient":
        """Create a backend client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            basic_auth=basic_auth,
            bearer_token=bearer_token,
            timeout_seconds=timeout_seconds,
            http_client=httpx.AsyncClient(),
        )

    async def get_daily_nutrition(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Fetch the items a user logged on a day."""
        return await self._post_with_bearer(
            "/foodsync/getUserItemsByDateApplied",
            {"userId": user_id, "dateApplied": date_applied},
        )

    async def get_user_goals(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Fetch the user's goals for a day."""
        response = await self.http_client.get(
            f"{self.base_url}/foodsync/getUserGoals",
            params={
                "userId": user_id,
                "dateApplied": date_applied,
                "skipLoginCheck": "true",
            },
            headers=self._bearer_headers(),
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def get_user_menu_by_date(
        self, user_id: str, date_applied: str
    ) -> dict[str, object]:
        """Fetch the menu assigned to a user for a day."""
        return await self._post_with_bearer(
            "/foodsync/getUserMenuByDate",
            {"userId": user_id, "dateApplied": date_applied},
        )

    async def search_items(  # noqa: PLR0913
        self,
        user_id: str,
        search_term: str,
        item_type: str = "FOOD",
        only_recipes: bool = False,
        country_code: str = "RO",
    ) -> list[dict[str, object]]:
        """Search the catalog."""
        payload = await self._post_with_bearer(
            "/backoffice/elasticSearch",
            {
                "userId": user_id,
                "searchTerm": search_term,
                "itemType": item_type,
                "onlyRecipes": only_recipes,
                "countryCode": country_code,
            },
        )
        return _unwrap_list(payload)

    async def get_items_by_ids(self, ids: list[str]) -> dict[str, object]:
        """Fetch detailed catalog items."""
        return await self._post_with_basic("/backoffice/getItemsByIds", {"ids": ids})

    async def add_menu_template(self, payload: dict[str, object]) -> dict[str, object]:
        """Create a menu template."""
        return await self._post_with_basic("/backoffice/addMenuTemplate", payload)

    async def update_menu_template(
        self, menu_template_id: str, payload: dict[str, object]
    ) -> dict[str, object]:
        """Update a menu template."""
        return await self._post_with_basic(
            "/backoffice/updateMenuTemplate",
            {"menuTemplateId": menu_template_id, **payload},
        )

    async def list_menu_templates(
        self, created_by_user_id: str | None = None
    ) -> dict[str, object]:
        """Fetch menu templates."""
        body: dict[str, object] = {}
        if created_by_user_id:
            body["createdByUserId"] = created_by_user_id
        return await self._post_with_basic("/backoffice/getAllMenuTemplates", body)

    async def delete_menu_template(self, menu_template_id: str) -> dict[str, object]:
        """Delete a menu template."""
        return await self._post_with_basic(
            "/backoffice/deleteMenuTemplateById", {"menuTemplateId": menu_template_id}
        )

    async def delete_menu_template_item(
        self, menu_template_id: str, item_type: str, item_id: str
    ) -> dict[str, object]:
        """Remove one item from a template plan."""
        return await self._post_with_basic(
            "/backoffice/deleteMenuTemplateItemById",
            {
                "itemId": item_id,
                "itemType": item_type,
                "menuTemplateId": menu_template_id,
            },
        )

    async def assign_menu_template(
        self,
        user_id: str,
        menu_template_id: str,
        date_applied: str,
        replace_existing: bool = True,
    ) -> dict[str, object]:
        """Assign a template to a user for a day."""
        return await self._post_with_basic(
            "/backoffice/assignMenuTemplateToUser",
            {
                "userId": user_id,
                "menuTemplateId": menu_template_id,
                "dateApplied": date_applied,
                "replaceExisting": replace_existing,
            },
        )

    async def remove_menu_from_user(
        self, user_id: str, menu_template_id: str, date_applied: str
    ) -> dict[str, object]:
        """Unassign a template from a user's day."""
        return await self._post_with_basic(
            "/backoffice/removeMenuFromUser",
            {
                "userId": user_id,
                "dateApplied": date_applied,
                "menuTemplateId": menu_template_id,
            },
        )

    async def get_user_menus(self, user_id: str) -> dict[str, object]:
        """Fetch the menus assigned to a user."""
        return await self._post_with_basic(
            "/backoffice/getUserMenus", {"userId": user_id}
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post_with_bearer(self, path: str, body: dict[str, object]) -> object:
        response = await self.http_client.post(
            f"{self.base_url}{path}",
            json=body,
            headers=self._bearer_headers(),
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    async def _post_with_basic(
        self, path: str, body: dict[str, object]
    ) -> dict[str, object]:
        response = await self.http_client.post(
            f"{self.base_url}{path}",
            json=body,
            headers={"Authorization": f"Basic {self.basic_auth}"},
            timeout=self.timeout_seconds,
        )
        response.raise_for_status()
        return response.json()

    def _bearer_headers(self) -> dict[str, str]:
        if not self.bearer_token:
            return {}
        return {"Authorization": f"Bearer {self.bearer_token}"}


def _unwrap_list(payload: object) -> list[dict[str, object]]:
    """Return the list inside the backend's ``{"data": {"data": [...]}}`` envelope."""
    current = payload
    for _ in range(2):
        if isinstance(current, dict) and "data" in current:
            current = current["data"]
    if not isinstance(current, list):
        return []
    return [entry for entry in current if isinstance(entry, dict)]
