"""Menu builder endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from datetime import date  # noqa: TC003
from typing import TYPE_CHECKING, Any

import httpx
from fastapi import APIRouter, Body, Depends, Header, HTTPException, Request, status

from nutrition_backoffice.api.models import (  # noqa: TC001
    AddPlanItemRequest,
    AssignTemplateRequest,
    SaveTemplateRequest,
)
from nutrition_backoffice.domain.days import MenuDaySummary  # noqa: TC001
from nutrition_backoffice.domain.scaling import MealTotals  # noqa: TC001

if TYPE_CHECKING:
    from nutrition_backoffice.containers import AppContainer

router = APIRouter(prefix="/menus", tags=["menus"])
_logger = logging.getLogger(__name__)


def _get_admin_token(request: Request) -> str:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/search")
async def search_items(
    request: Request, user_id: str, q: str, only_recipes: bool = False
) -> list[dict[str, Any]]:
    """Search catalog foods and recipes."""
    container: AppContainer = request.app.state.container
    try:
        return await container.menu_service.search(
            user_id, q, only_recipes=only_recipes
        )
    except httpx.HTTPError as exc:
        _logger.exception("Catalog search failed", extra={"search_term": q})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY, detail="Catalog search failed"
        ) from exc


@router.post("/items")
async def add_item(payload: AddPlanItemRequest, request: Request) -> dict[str, Any]:
    """Prepare a catalog item for a plan and return its initial serving."""
    container: AppContainer = request.app.state.container
    item, selection = await container.menu_service.add_item(payload.item)
    return {"item": item, "selection": asdict(selection)}


@router.post("/totals")
async def template_totals(
    request: Request,
    template: dict[str, Any] = Body(...),  # noqa: B008
) -> MealTotals:
    """Return per-meal and total values for a template."""
    container: AppContainer = request.app.state.container
    return container.menu_service.template_totals(template)


@router.post("/templates", dependencies=[Depends(require_admin)])
async def save_template(
    payload: SaveTemplateRequest, request: Request
) -> dict[str, Any]:
    """Build a template from the edited plans and save it."""
    container: AppContainer = request.app.state.container
    try:
        template = container.menu_service.build_template(
            payload.name,
            payload.plans(),
            {
                key: selection.to_domain()
                for key, selection in payload.selections.items()
            },
            is_assignable_by_user=payload.is_assignable_by_user,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc

    try:
        response = await container.menu_service.save_template(
            template, menu_template_id=payload.menu_template_id
        )
    except httpx.HTTPError as exc:
        _logger.exception("Failed to save menu template", extra={"name": payload.name})
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to save menu template",
        ) from exc
    return {"template": template, "response": response}


@router.get("/templates")
async def list_templates(
    request: Request, created_by_user_id: str | None = None
) -> list[MenuDaySummary]:
    """Return saved templates with their totals."""
    container: AppContainer = request.app.state.container
    try:
        return await container.menu_service.list_templates(created_by_user_id)
    except httpx.HTTPError as exc:
        _logger.exception("Failed to list menu templates")
        raise _bad_gateway("Failed to list menu templates") from exc


@router.delete("/templates/{template_id}", dependencies=[Depends(require_admin)])
async def delete_template(template_id: str, request: Request) -> dict[str, Any]:
    """Delete a template."""
    container: AppContainer = request.app.state.container
    try:
        return await container.menu_service.delete_template(template_id)
    except httpx.HTTPError as exc:
        _logger.exception(
            "Failed to delete menu template", extra={"template_id": template_id}
        )
        raise _bad_gateway("Failed to delete menu template") from exc


@router.delete(
    "/templates/{template_id}/plans/{plan_key}/items/{item_id}",
    dependencies=[Depends(require_admin)],
)
async def delete_template_item(
    template_id: str, plan_key: str, item_id: str, request: Request
) -> dict[str, Any]:
    """Remove one item from a template plan."""
    container: AppContainer = request.app.state.container
    try:
        return await container.menu_service.delete_template_item(
            template_id, plan_key, item_id
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
        ) from exc
    except httpx.HTTPError as exc:
        _logger.exception(
            "Failed to delete menu template item", extra={"template_id": template_id}
        )
        raise _bad_gateway("Failed to delete menu template item") from exc


@router.post(
    "/templates/{template_id}/assignments", dependencies=[Depends(require_admin)]
)
async def assign_template(
    template_id: str, payload: AssignTemplateRequest, request: Request
) -> dict[str, Any]:
    """Assign a template to a user's day."""
    container: AppContainer = request.app.state.container
    try:
        response = await container.menu_service.assign_template(
            payload.user_id,
            template_id,
            payload.day,
            replace_existing=payload.replace_existing,
        )
    except httpx.HTTPError as exc:
        _logger.exception(
            "Failed to assign menu template", extra={"template_id": template_id}
        )
        raise _bad_gateway("Failed to assign menu template") from exc
    container.day_service.invalidate(payload.user_id, payload.day)
    return response


@router.delete(
    "/templates/{template_id}/assignments/{user_id}/{day}",
    dependencies=[Depends(require_admin)],
)
async def unassign_template(
    template_id: str, user_id: str, day: date, request: Request
) -> dict[str, Any]:
    """Remove a template from a user's day."""
    container: AppContainer = request.app.state.container
    try:
        response = await container.menu_service.unassign_template(
            user_id, template_id, day
        )
    except httpx.HTTPError as exc:
        _logger.exception(
            "Failed to unassign menu template", extra={"template_id": template_id}
        )
        raise _bad_gateway("Failed to unassign menu template") from exc
    container.day_service.invalidate(user_id, day)
    return response


@router.get("/users/{user_id}")
async def user_menus(
    user_id: str, request: Request, menu_template_id: str | None = None
) -> list[MenuDaySummary]:
    """Return the menus assigned to a user with their totals."""
    container: AppContainer = request.app.state.container
    try:
        return await container.menu_service.user_menus(
            user_id, menu_template_id=menu_template_id
        )
    except httpx.HTTPError as exc:
        _logger.exception("Failed to load user menus", extra={"user_id": user_id})
        raise _bad_gateway("Failed to load user menus") from exc


def _bad_gateway(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=detail)
