"""Tests for the menu template builder."""

import asyncio
from datetime import date

import httpx
import pytest

from nutrition_backoffice.domain.scaling import ServingSelection
from nutrition_backoffice.services import scaling
from nutrition_backoffice.services.cache import InMemoryCache
from nutrition_backoffice.services.menus import (
    MenuBuilderService,
    change_serving,
    default_selection,
    enrich_item,
    initial_selection,
    plan_item_view,
    summarise_menu,
)
from tests.conftest import (
    FakeBackendClient,
    grams_serving,
    make_food,
    make_recipe,
    portion_serving,
)


def _service(client: FakeBackendClient) -> MenuBuilderService:
    return MenuBuilderService(client=client, cache=InMemoryCache(), retry_attempts=0)


def test_enrich_item_snapshots_recipe() -> None:
    recipe = make_recipe(
        numberOfServings=4.0,
        ingredients=[
            {"name": "lentils", "calorieAmount": 350, "carbohydateAmount": 60},
            "broken",
        ],
    )

    enriched = enrich_item(recipe, None)

    assert enriched["originalCalories"] == 600
    assert enriched["originalNutrients"] == recipe["totalNutrients"]
    assert enriched["numberOfServings"] == 4
    assert isinstance(enriched["numberOfServings"], int)
    assert enriched["originalServings"] == 4
    assert enriched["ingredients"][0]["originalCalorieAmount"] == 350
    assert enriched["ingredients"][0]["originalCarbohydrateAmount"] == 60
    assert enriched["ingredients"][0]["originalWeight"] is None
    assert enriched["ingredients"][1] == "broken"
    assert enriched["originalServingAmount"] == 800
    assert enriched["originalServingId"] == "11_portie"


def test_enrich_item_keeps_existing_snapshot() -> None:
    food = make_food(originalCalories=150)

    enriched = enrich_item(food, {"totalCalories": 210})

    assert enriched["originalCalories"] == 150
    assert enriched["totalCalories"] == 210
    assert "numberOfServings" not in enriched


def test_enrich_item_fills_null_snapshot_fields() -> None:
    recipe = make_recipe(
        originalCalories=None,
        originalNutrients=None,
        ingredients=[{"name": "lentils", "weight": 250, "originalWeight": None}],
    )

    enriched = enrich_item(recipe, None)

    assert enriched["originalCalories"] == 600
    assert enriched["originalNutrients"] == recipe["totalNutrients"]
    assert enriched["ingredients"][0]["originalWeight"] == 250
    assert scaling.scale(enriched, 100, 600).calories == 100


def test_default_selection() -> None:
    recipe = enrich_item(make_recipe(), None)
    food = enrich_item(make_food(), None)

    assert default_selection(recipe) == ServingSelection("11_portie", 200)
    assert default_selection(food) == ServingSelection("10_grame", 100)


def test_add_item_merges_details_and_caches_them() -> None:
    details = make_recipe(ingredients=[{"name": "lentils", "weight": 300}])
    client = FakeBackendClient(items={"recipe-1": details})
    service = _service(client)
    search_result = {"id": "recipe-1", "name": "Lentil stew", "itemType": "RECIPE"}

    item, selection = asyncio.run(service.add_item(search_result))
    asyncio.run(service.add_item(search_result))

    assert item["ingredients"][0]["originalWeight"] == 300
    assert item["originalServingAmount"] == 600
    assert selection == ServingSelection("11_portie", 200)
    assert client.count("items") == 1


def test_add_item_falls_back_to_search_result() -> None:
    client = FakeBackendClient(error=httpx.ConnectError("backend down"))
    service = _service(client)

    item, selection = asyncio.run(service.add_item(make_food()))

    assert item["originalServingAmount"] == 100
    assert selection == ServingSelection("10_grame", 100)


def test_search_passes_filters() -> None:
    client = FakeBackendClient(search_results=[make_food()])
    service = _service(client)

    results = asyncio.run(service.search("u1", "pui", only_recipes=True))

    assert results == [make_food()]
    assert client.calls == [("search", ("u1", "pui", True))]


def test_initial_selection_defaults_to_original_serving() -> None:
    assert initial_selection(make_recipe()) == ServingSelection("11_portie", 600)


def test_initial_selection_reads_changed_serving() -> None:
    item = make_food(changedServing={"value": "150", "serving": grams_serving()})

    assert initial_selection(item) == ServingSelection("10_grame", 150)


@pytest.mark.parametrize(
    ("legacy_id", "expected"),
    [(1, "11_portie"), ("10_grame", "10_grame"), ("99_cana", "99_cana")],
)
def test_initial_selection_reads_legacy_serving_id(
    legacy_id: object, expected: str
) -> None:
    item = make_recipe(changedServing={"value": 50, "servingId": legacy_id})

    assert initial_selection(item) == ServingSelection(expected, 50)


def test_change_serving_ignores_unknown_serving() -> None:
    food = make_food()

    unknown = change_serving(food, ServingSelection("12_cana", 240))
    missing_amount = change_serving(food, ServingSelection("10_grame", None))

    assert "changedServing" not in unknown
    assert "changedServing" not in missing_amount
    assert change_serving(food, None) == food


def test_build_template_annotates_selected_items() -> None:
    service = _service(FakeBackendClient())
    plans = {
        "breakfastPlan": [make_food()],
        "lunchPlan": [make_recipe()],
        "dinnerPlan": "broken",
    }

    template = service.build_template(
        "  Cut week 1 ",
        plans,
        {"lunchPlan-0": ServingSelection("11_portie", 400)},
        is_assignable_by_user=True,
    )

    assert template["name"] == "Cut week 1"
    assert template["isAssignableByUser"] is True
    assert template["dinnerPlan"] == []
    assert template["snackPlan"] == []
    breakfast = template["breakfastPlan"][0]
    assert breakfast["originalServingAmount"] == 100
    assert "changedServing" not in breakfast
    lunch = template["lunchPlan"][0]
    assert lunch["changedServing"] == {"value": 400, "serving": portion_serving()}
    assert service.template_totals(template).total.calories == 600


def test_build_template_requires_name() -> None:
    service = _service(FakeBackendClient())

    with pytest.raises(ValueError, match="Menu name is required"):
        service.build_template("   ", {}, {})


def test_saved_template_restores_same_selection() -> None:
    service = _service(FakeBackendClient())
    selection = ServingSelection("11_portie", 400)
    template = service.build_template("Cut", {"lunchPlan": [make_recipe()]}, {})
    template = service.build_template("Cut", template, {"lunchPlan-0": selection})

    saved = template["lunchPlan"][0]

    assert initial_selection(saved) == selection
    assert scaling.scale_plan_item(saved).calories == 400


def test_save_template_adds_or_updates() -> None:
    client = FakeBackendClient()
    service = _service(client)
    template = service.build_template("Cut", {}, {})

    created = asyncio.run(service.save_template(template))
    updated = asyncio.run(service.save_template(template, menu_template_id="t-9"))

    assert created == {"data": {"id": "template-1"}}
    assert updated == {"data": {"id": "t-9"}}
    assert [name for name, _ in client.calls] == ["add_template", "update_template"]


def test_plan_item_view_and_menu_summary() -> None:
    item = make_recipe(changedServing={"value": 100})

    view = plan_item_view(item)
    summary = summarise_menu({"lunchPlan": [item], "snackPlan": "broken"})

    assert view.is_recipe is True
    assert view.selected_amount == 100
    assert view.original_amount == 600
    assert view.scaled.calories == 100
    assert summary.name == ""
    assert summary.items["snackPlan"] == []
    assert summary.totals.per_meal["lunch"].calories == 100


def test_list_templates_summarises_each_template() -> None:
    client = FakeBackendClient(
        templates=[
            {"_id": "t-1", "name": "Cut", "lunchPlan": [make_food()]},
            {"id": "t-2", "name": "Bulk", "dinnerPlan": [make_recipe()]},
            "broken",
        ]
    )
    service = _service(client)

    templates = asyncio.run(service.list_templates("nutritionist-1"))

    assert [template.template_id for template in templates] == ["t-1", "t-2"]
    assert templates[0].name == "Cut"
    assert templates[0].totals.total.calories == 200
    assert templates[1].totals.per_meal["dinner"].calories == 600
    assert client.calls == [("list_templates", "nutritionist-1")]


def test_delete_template_item_rejects_unknown_plan() -> None:
    client = FakeBackendClient()
    service = _service(client)

    with pytest.raises(ValueError, match="Unknown plan"):
        asyncio.run(service.delete_template_item("t-1", "brunchPlan", "food-1"))

    asyncio.run(service.delete_template_item("t-1", "lunchPlan", "food-1"))
    asyncio.run(service.delete_template("t-1"))
    assert client.calls == [
        ("delete_item", ("t-1", "lunchPlan", "food-1")),
        ("delete_template", "t-1"),
    ]


def test_assign_and_unassign_send_iso_dates() -> None:
    client = FakeBackendClient()
    service = _service(client)

    asyncio.run(
        service.assign_template("u1", "t-1", date(2024, 3, 5), replace_existing=False)
    )
    asyncio.run(service.unassign_template("u1", "t-1", date(2024, 3, 5)))

    assert client.calls == [
        ("assign", ("u1", "t-1", "2024-03-05", False)),
        ("unassign", ("u1", "t-1", "2024-03-05")),
    ]


def test_user_menus_filters_by_template() -> None:
    client = FakeBackendClient(
        user_menus=[
            {
                "menuTemplateId": "t-1",
                "name": "Cut",
                "dateApplied": "2024-03-05",
                "breakfastPlan": [make_food()],
            },
            {"menuTemplateId": "t-2", "name": "Bulk", "dateApplied": "2024-03-06"},
        ]
    )
    service = _service(client)

    every_menu = asyncio.run(service.user_menus("u1"))
    one_template = asyncio.run(service.user_menus("u1", menu_template_id="t-1"))

    assert [menu.template_id for menu in every_menu] == ["t-1", "t-2"]
    assert len(one_template) == 1
    assert one_template[0].date_applied == "2024-03-05"
    assert one_template[0].totals.total.calories == 200
