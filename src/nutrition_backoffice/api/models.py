"""Pydantic models for API request payloads."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from nutrition_backoffice.domain.scaling import ServingSelection


class ScaleItemRequest(BaseModel):
    """Scale one catalog, day log or template item."""

    item: dict[str, Any]
    selected_amount: float | None = None
    original_amount: float | None = None


class ServingSelectionPayload(BaseModel):
    """Serving chosen for a plan item in the menu builder."""

    serving_id: str | None = None
    amount: float | None = None

    def to_domain(self) -> ServingSelection:
        """Convert to the domain selection."""
        return ServingSelection(serving_id=self.serving_id, amount=self.amount)


class AddPlanItemRequest(BaseModel):
    """Catalog search result to add to a plan."""

    item: dict[str, Any]


class SaveTemplateRequest(BaseModel):
    """Menu template as edited in the builder."""

    name: str
    breakfast_plan: list[dict[str, Any]] = Field(default_factory=list)
    lunch_plan: list[dict[str, Any]] = Field(default_factory=list)
    dinner_plan: list[dict[str, Any]] = Field(default_factory=list)
    snack_plan: list[dict[str, Any]] = Field(default_factory=list)
    selections: dict[str, ServingSelectionPayload] = Field(default_factory=dict)
    is_assignable_by_user: bool = False
    menu_template_id: str | None = None

    def plans(self) -> dict[str, list[dict[str, Any]]]:
        """Return the plans keyed the way the backend stores them."""
        return {
            "breakfastPlan": self.breakfast_plan,
            "lunchPlan": self.lunch_plan,
            "dinnerPlan": self.dinner_plan,
            "snackPlan": self.snack_plan,
        }


class AssignTemplateRequest(BaseModel):
    """Template assignment to a user's day."""

    user_id: str
    day: date
    replace_existing: bool = True
