import asyncio
from unittest.mock import MagicMock

from asset_viewer.events import ASSET_EVENT, ATTRIBUTE_EVENT, LAYOUT_REQUESTED, SAVE_RESULT, EventBus
from asset_viewer.models import AssetEvent, AttributeEvent, ViewerState
from asset_viewer.viewer import STATUS_NO_RESPONSE, AssetViewer

from conftest import FakeStore, make_asset, make_attribute


def _thing():
    return make_asset(
        "a1",
        name="Sensor",
        created_on=1700000000000,
        attributes=[
            make_attribute("manufacturer", "ACME"),
            make_attribute("location", {"type": "Point", "coordinates": [5.1, 52.1]}),
            make_attribute("temp", 21, history=True),
        ],
    )


def _viewer(store=None, **kwargs):
    bus = EventBus()
    viewer = AssetViewer(store or FakeStore([_thing()]), bus, viewer_id="v1", **kwargs)
    return viewer, bus


def _load(viewer, asset_id="a1"):
    asyncio.run(viewer.set_asset_id(asset_id))


def test_empty_viewer():
    viewer, _ = _viewer()

    tree = viewer.render()

    assert viewer.state == ViewerState.EMPTY
    assert tree.find_by_class("msg")[0].children[0].props["value"] == "noAssetSelected"


def test_unknown_asset_is_not_found():
    viewer, _ = _viewer()

    _load(viewer, "missing")

    assert viewer.state == ViewerState.NOT_FOUND
    assert viewer.render().find_by_class("msg")[0].children[0].text == "Not found"


def test_store_failure_is_not_found():
    store = FakeStore([_thing()])
    store.fail_queries = True
    viewer, _ = _viewer(store)

    _load(viewer)

    assert viewer.state == ViewerState.NOT_FOUND


def test_loaded_asset_renders_panels():
    viewer, _ = _viewer()
    _load(viewer)

    tree = asyncio.run(viewer.update())

    assert viewer.state == ViewerState.VIEWING
    container = tree.find("container")
    assert [panel.id for panel in container.children] == [
        "info-panel", "location-panel", "attributes-panel", "history-panel",
    ]
    assert container.styles == {"grid-auto-rows": "5px", "grid-row-gap": "10px"}
    assert tree.find("created-time") is not None
    assert tree.find("history-attribute-history").props["attribute"]["name"] == "temp"
    assert viewer.render_pass.completed is True


def test_measurements_set_row_spans():
    viewer, _ = _viewer()
    _load(viewer)
    tree = asyncio.run(viewer.update())

    spans = viewer.update_measurements({"info-panel": 47, "history-panel": 200})

    assert spans == {"info-panel": 4, "history-panel": 14}
    assert tree.find("info-panel").styles["grid-row-end"] == "span 4"


def test_layout_request_only_for_own_viewer():
    viewer, bus = _viewer()
    _load(viewer)
    asyncio.run(viewer.update())
    viewer.relayout = MagicMock(return_value={})

    bus.publish(LAYOUT_REQUESTED, {"viewer_id": "other"})
    viewer.relayout.assert_not_called()

    viewer.request_layout()
    viewer.relayout.assert_called_once()


def test_layout_request_before_render_completes_is_deferred():
    viewer, _ = _viewer()
    _load(viewer)
    viewer.render()
    viewer.relayout = MagicMock(return_value={})

    viewer.request_layout()

    viewer.relayout.assert_not_called()


def test_events_for_other_assets_are_ignored():
    viewer, bus = _viewer()
    _load(viewer)

    bus.publish(ATTRIBUTE_EVENT, AttributeEvent(asset_id="other", attribute_name="temp", deleted=True))
    bus.publish(ASSET_EVENT, AssetEvent(asset_id="other", asset=make_asset("other")))

    assert list(viewer.asset.attributes) == ["manufacturer", "location", "temp"]
    assert viewer.asset.id == "a1"


def test_attribute_deletion_refreshes_asset():
    viewer, bus = _viewer()
    _load(viewer)
    original = viewer.asset

    bus.publish(ATTRIBUTE_EVENT, AttributeEvent(asset_id="a1", attribute_name="temp", deleted=True))

    assert list(viewer.asset.attributes) == ["manufacturer", "location"]
    assert viewer.asset is not original
    assert "temp" in original.attributes


def test_attribute_value_updates_rendered_input():
    viewer, bus = _viewer()
    _load(viewer)
    tree = asyncio.run(viewer.update())

    bus.publish(ATTRIBUTE_EVENT, AttributeEvent(asset_id="a1", attribute_name="manufacturer", value="Globex",
                                                timestamp=1700000001000))

    assert viewer.asset.attributes["manufacturer"].value == "Globex"
    assert tree.find("attribute-manufacturer").props["attribute"]["value"] == "Globex"


def test_readonly_viewer_cannot_edit():
    viewer, _ = _viewer(readonly=True)
    _load(viewer)

    asyncio.run(viewer.set_edit_mode(True))

    assert viewer.state == ViewerState.VIEWING
    assert viewer.working_asset is None


def test_edit_mode_uses_working_copy():
    viewer, _ = _viewer()
    _load(viewer)

    asyncio.run(viewer.set_edit_mode(True))
    tree = asyncio.run(viewer.update())

    assert viewer.state == ViewerState.EDITING
    assert tree.find("edit-asset-panel") is not None
    assert tree.find("save-btn").props["disabled"] is True

    handled = asyncio.run(viewer.dispatch("name-input", "change", "Renamed"))

    assert handled is True
    assert viewer.is_modified() is True
    assert viewer.working_asset.name == "Renamed"
    assert viewer.asset.name == "Sensor"
    assert tree.find("save-btn").props["disabled"] is False


def test_dispatch_unknown_node():
    viewer, _ = _viewer()
    _load(viewer)
    asyncio.run(viewer.update())

    assert asyncio.run(viewer.dispatch("nope", "click")) is False


def test_save_success_reloads_and_leaves_edit_mode():
    store = FakeStore([_thing()])
    viewer, bus = _viewer(store)
    results = []
    bus.subscribe(SAVE_RESULT, results.append)
    _load(viewer)

    async def edit_and_save():
        await viewer.set_edit_mode(True)
        viewer.set_name("Renamed")
        viewer.set_attribute_value("temp", 25)
        return await viewer.save()

    result = asyncio.run(edit_and_save())

    assert result.status_code == 204
    assert [r.status_code for r in results] == [204]
    assert viewer.state == ViewerState.VIEWING
    assert viewer.asset.name == "Renamed"
    assert viewer.asset.attributes["temp"].value == 25
    assert store.updates[0].name == "Renamed"


def test_save_failure_stays_in_edit_mode():
    store = FakeStore([_thing()], update_status=400)
    viewer, bus = _viewer(store)
    results = []
    bus.subscribe(SAVE_RESULT, results.append)
    _load(viewer)

    async def edit_and_save():
        await viewer.set_edit_mode(True)
        viewer.set_name("Renamed")
        return await viewer.save()

    result = asyncio.run(edit_and_save())

    assert result.status_code == 400
    assert [r.status_code for r in results] == [400]
    assert viewer.state == ViewerState.EDITING
    assert viewer.is_modified() is True
    assert store.assets["a1"].name == "Sensor"


def test_save_transport_failure_reports_no_response():
    store = FakeStore([_thing()])
    store.fail_updates = True
    viewer, _ = _viewer(store)
    _load(viewer)

    async def edit_and_save():
        await viewer.set_edit_mode(True)
        return await viewer.save()

    result = asyncio.run(edit_and_save())

    assert result.status_code == STATUS_NO_RESPONSE
    assert viewer.state == ViewerState.EDITING


def test_leaving_edit_mode_discards_changes():
    viewer, _ = _viewer()
    _load(viewer)

    async def edit_and_cancel():
        await viewer.set_edit_mode(True)
        viewer.set_name("Renamed")
        await viewer.set_edit_mode(False)

    asyncio.run(edit_and_cancel())

    assert viewer.state == ViewerState.VIEWING
    assert viewer.asset.name == "Sensor"
    assert viewer.is_modified() is False


def test_close_unsubscribes():
    viewer, bus = _viewer()

    viewer.close()

    assert bus.handler_count(ASSET_EVENT) == 0
    assert bus.handler_count(ATTRIBUTE_EVENT) == 0
    assert bus.handler_count(LAYOUT_REQUESTED) == 0


def test_read_only_attributes_in_edit_panel():
    asset = make_asset("a1", attributes=[make_attribute("temp", 21, readOnly=True), make_attribute("notes")])
    viewer, _ = _viewer(FakeStore([asset]))
    _load(viewer)

    asyncio.run(viewer.set_edit_mode(True))
    tree = asyncio.run(viewer.update())

    assert tree.find("edit-attribute-temp").props["readonly"] is True
    assert tree.find("edit-attribute-notes").props["readonly"] is False


def _group_viewer(group_asset, thing_registry):
    children = [
        make_asset("c1", name="Sensor 1", parent_id="g1",
                   attributes=[make_attribute("temp", 21), make_attribute("status", "ok")]),
        make_asset("c2", name="Sensor 2", parent_id="g2",
                   attributes=[make_attribute("temp", 19), make_attribute("status", "ok")]),
    ]
    store = FakeStore([group_asset, make_asset("g2", asset_type=group_asset.type,
                                                attributes=group_asset.attribute_list())] + children)
    viewer = AssetViewer(store, EventBus(), registry=thing_registry, viewer_id="v1")
    asyncio.run(viewer.set_asset_id("g1"))
    return viewer


def test_confirmed_group_columns_survive_rerender(group_asset, thing_registry):
    viewer = _group_viewer(group_asset, thing_registry)
    asyncio.run(viewer.update())

    async def pick_status_only():
        await viewer.dispatch("group-add-remove-columns", "click")
        await viewer.dispatch("group-attribute-modal-temp", "change", False)
        await viewer.dispatch("group-attribute-modal", "ok")

    asyncio.run(pick_status_only())
    tree = asyncio.run(viewer.update())

    assert tree.find("group-attribute-table").props["columns"] == ["name", "status"]

    asyncio.run(viewer.set_asset_id("g2"))
    tree = asyncio.run(viewer.update())

    assert viewer.group_selections == {}
    assert tree.find("group-attribute-table").props["columns"] == ["name", "status", "temp"]
