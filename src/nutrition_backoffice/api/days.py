"""Day summary and scaling endpoints."""

from __future__ import annotations

import logging
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING, Any

import httpx
from fastapi import APIRouter, Body, HTTPException, Request, status

from nutrition_backoffice.api.models import ScaleItemRequest  # noqa: TC001
from nutrition_backoffice.domain.days import DaySummary  # noqa: TC001
from nutrition_backoffice.domain.scaling import (  # noqa: TC001
    MealTotals,
    ScaledNutrition,
)
from nutrition_backoffice.services import scaling

if TYPE_CHECKING:
    from nutrition_backoffice.containers import AppContainer

router = APIRouter(tags=["days"])
_logger = logging.getLogger(__name__)


@router.post("/scaling/item")
async def scale_item(payload: ScaleItemRequest) -> ScaledNutrition:
    """Scale one item to the requested amount."""
    if payload.selected_amount is None:
        return scaling.scale_item(payload.item)
    original = payload.original_amount
    if original is None:
        original = scaling.resolve_original_serving_amount(payload.item)
    return scaling.scale(payload.item, payload.selected_amount, original)


@router.post("/scaling/day")
async def scale_day(daily: dict[str, Any] = Body(...)) -> MealTotals:  # noqa: B008
    """Return per-meal and total values for a day or template payload."""
    return scaling.aggregate_meals(daily)


@router.get("/users/{user_id}/days/{day}")
async def get_day(
    user_id: str, day: date, request: Request, include_menu: bool = True
) -> DaySummary:
    """Return a user's day with totals and goal progress."""
    container: AppContainer = request.app.state.container
    try:
        return await container.day_service.get_day(
            user_id, day, include_menu=include_menu
        )
    except httpx.HTTPError as exc:
        _logger.exception(
            "Failed to load day", extra={"user_id": user_id, "day": day.isoformat()}
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to load daily nutrition",
        ) from exc


@router.get("/users/{user_id}/journal")
async def get_journal(
    user_id: str, start: date, end: date, request: Request
) -> list[DaySummary]:
    """Return a user's days between start and end inclusive."""
    container: AppContainer = request.app.state.container
    try:
        return await container.day_service.get_days(user_id, start, end)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except httpx.HTTPError as exc:
        _logger.exception("Failed to load journal", extra={"user_id": user_id})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to load daily nutrition",
        ) from exc
