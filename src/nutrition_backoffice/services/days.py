"""Day summaries for the My Day, client day and client journal views."""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import TypeVar

from nutrition_backoffice.adapters.backend_client import BackendClient
from nutrition_backoffice.domain.days import DaySummary, GoalProgress
from nutrition_backoffice.domain.scaling import MEAL_KEYS, MacroTotals
from nutrition_backoffice.services import scaling
from nutrition_backoffice.services.cache import Cache
from nutrition_backoffice.services.menus import summarise_menu
from nutrition_backoffice.services.retry import call_with_retry

_logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class DailyNutritionService:
    """Fetches a user's day from the backend and computes its totals.

    Identical requests for the same user and day share one in-flight load and
    reuse the result for ``cache_ttl_seconds``.
    """

    client: BackendClient
    cache: Cache
    cache_ttl_seconds: int = 30
    debug: bool = False
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3
    _inflight: dict[str, "asyncio.Task[DaySummary]"] = field(
        default_factory=dict, init=False, repr=False
    )

    async def get_day(
        self, user_id: str, day: date, include_menu: bool = True
    ) -> DaySummary:
        """Return the summary of one day."""
        cache_key = f"day:{user_id}:{day.isoformat()}:{int(include_menu)}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, DaySummary):
            return cached

        task = self._inflight.get(cache_key)
        if task is None:
            task = asyncio.ensure_future(self._load_day(user_id, day, include_menu))
            self._inflight[cache_key] = task
        try:
            summary = await asyncio.shield(task)
        finally:
            if task.done():
                self._inflight.pop(cache_key, None)

        self.cache.set(cache_key, summary, ttl_seconds=self.cache_ttl_seconds)
        return summary

    async def get_days(
        self, user_id: str, start: date, end: date, include_menu: bool = False
    ) -> list[DaySummary]:
        """Return summaries for every day from start to end inclusive."""
        if end < start:
            raise ValueError("end must not be before start")
        span = (end - start).days
        days = [start + timedelta(days=offset) for offset in range(span + 1)]
        return list(
            await asyncio.gather(
                *(self.get_day(user_id, day, include_menu=include_menu) for day in days)
            )
        )

    def invalidate(self, user_id: str, day: date) -> None:
        """Forget cached summaries of a day after it changed."""
        for include_menu in (0, 1):
            self.cache.delete(f"day:{user_id}:{day.isoformat()}:{include_menu}")

    async def _load_day(
        self, user_id: str, day: date, include_menu: bool
    ) -> DaySummary:
        date_applied = day.isoformat()
        requests = [
            self._call(
                lambda: self.client.get_daily_nutrition(user_id, date_applied),
                action="daily_nutrition",
            ),
            self._call(
                lambda: self.client.get_user_goals(user_id, date_applied),
                action="user_goals",
            ),
        ]
        if include_menu:
            requests.append(
                self._call(
                    lambda: self.client.get_user_menu_by_date(user_id, date_applied),
                    action="user_menu",
                )
            )
        results = await asyncio.gather(*requests)
        menu = _unwrap(results[2], depth=1) if include_menu else None
        if self.debug:
            _logger.info("Loaded day: user_id=%s day=%s", user_id, date_applied)
        return build_day_summary(
            user_id=user_id,
            day=day,
            daily=_unwrap(results[0], depth=2) or {},
            user=_unwrap(results[1], depth=2) or {},
            menu=menu,
        )

    async def _call(self, func: Callable[[], Awaitable[T]], *, action: str) -> T:
        return await call_with_retry(
            func,
            action=action,
            attempts=self.retry_attempts,
            delay_seconds=self.retry_delay_seconds,
            debug=self.debug,
        )


def build_day_summary(
    *,
    user_id: str,
    day: date,
    daily: Mapping[str, object],
    user: Mapping[str, object],
    menu: Mapping[str, object] | None = None,
) -> DaySummary:
    """Compute totals, goal progress and extras for a day payload."""
    totals = scaling.aggregate_meals(daily)
    rounded = scaling.round_totals(totals.total)

    user_goals = user.get("userGoals")
    if not isinstance(user_goals, Mapping):
        user_goals = {}
    goals = MacroTotals(
        calories=scaling.to_number(user_goals.get("totalCalories")),
        proteins_in_grams=scaling.to_number(user_goals.get("proteinsInGrams")),
        carbohydrates_in_grams=scaling.to_number(
            user_goals.get("carbohydratesInGrams")
        ),
        fat_in_grams=scaling.to_number(user_goals.get("fatInGrams")),
    )
    progress = [
        GoalProgress(
            label=label,
            value=getattr(rounded, attribute),
            goal=getattr(goals, attribute),
            percent=scaling.goal_percent(
                getattr(rounded, attribute), getattr(goals, attribute)
            ),
        )
        for label, attribute in (
            ("calories", "calories"),
            ("protein", "proteins_in_grams"),
            ("carbs", "carbohydrates_in_grams"),
            ("fat", "fat_in_grams"),
        )
    ]

    exercise_calories = math.fsum(
        scaling.scale_applied_quantity(entry).calories
        for entry in _entries(daily.get("exercise"))
        if isinstance(entry.get("exercise"), Mapping)
    )
    water_total_ml = math.fsum(
        scaling.to_number(entry.get("quantity"))
        for entry in _entries(daily.get("water"))
    )
    meal_photos = {
        meal: _optional_str(daily.get(f"{meal}PhotoUrl")) for meal in MEAL_KEYS
    }

    return DaySummary(
        user_id=user_id,
        day=day,
        totals=totals,
        rounded_totals=rounded,
        goals=goals,
        progress=progress,
        exercise_calories=exercise_calories,
        water_total_ml=water_total_ml,
        meal_photos=meal_photos,
        menu=summarise_menu(menu) if menu else None,
    )


def _unwrap(payload: object, depth: int) -> dict[str, object] | None:
    """Strip up to ``depth`` levels of the backend's ``data`` envelope."""
    current = payload
    for _ in range(depth):
        if isinstance(current, Mapping) and "data" in current:
            current = current["data"]
    if isinstance(current, Mapping) and current:
        return dict(current)
    return None


def _entries(value: object) -> list[Mapping[str, object]]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, Mapping)]


def _optional_str(value: object) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None
