"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from nutrition_backoffice.adapters.backend_client import (
    BackendClient,
    HttpxBackendClient,
)
from nutrition_backoffice.config import Settings
from nutrition_backoffice.services.cache import InMemoryCache
from nutrition_backoffice.services.days import DailyNutritionService
from nutrition_backoffice.services.menus import MenuBuilderService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    backend_client: BackendClient
    day_service: DailyNutritionService
    menu_service: MenuBuilderService
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    backend_client = HttpxBackendClient.create(
        base_url=resolved_settings.backend_base_url,
        basic_auth=resolved_settings.backend_basic_auth,
        bearer_token=resolved_settings.backend_bearer_token,
        timeout_seconds=resolved_settings.request_timeout_seconds,
    )
    cache = InMemoryCache()
    day_service = DailyNutritionService(
        client=backend_client,
        cache=cache,
        cache_ttl_seconds=resolved_settings.day_cache_ttl_seconds,
        debug=resolved_settings.debug,
    )
    menu_service = MenuBuilderService(
        client=backend_client,
        cache=cache,
        item_ttl_seconds=resolved_settings.item_cache_ttl_seconds,
        debug=resolved_settings.debug,
    )

    async def close_resources() -> None:
        await backend_client.close()

    return AppContainer(
        settings=resolved_settings,
        backend_client=backend_client,
        day_service=day_service,
        menu_service=menu_service,
        close_resources=close_resources,
    )
