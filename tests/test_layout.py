import asyncio

from asset_viewer.content import h
from asset_viewer.layout import NodeLayoutContainer, RenderPass, compute_row_span, parse_px, relayout


def _container(**styles):
    return h(
        "div",
        h("div", id="a-panel", classes=["panel"]),
        h("div", id="b-panel", classes=["panel", "mobileHidden"]),
        h("div", id="not-a-panel"),
        id="container",
        styles={"grid-auto-rows": "5px", "grid-row-gap": "10px", **styles},
    )


def test_parse_px():
    assert parse_px("10px") == 10
    assert parse_px(" 5px") == 5
    assert parse_px("-3px") == -3
    assert parse_px("auto") is None
    assert parse_px(None) is None


def test_compute_row_span():
    assert compute_row_span(47, 10, 2) == 5
    assert compute_row_span(48, 10, 2) == 5
    assert compute_row_span(0, 5, 10) == 1


def test_relayout_sets_span_on_measured_panels():
    container = _container()

    spans = relayout(NodeLayoutContainer(container, {"a-panel": 100}))

    assert spans == {0: 8}
    assert container.find("a-panel").styles["grid-row-end"] == "span 8"
    assert "grid-row-end" not in container.find("b-panel").styles
    assert "grid-row-end" not in container.find("not-a-panel").styles


def test_relayout_is_idempotent():
    container = _container()
    layout = NodeLayoutContainer(container, {"a-panel": 47, "b-panel": 3})

    first = relayout(layout)
    second = relayout(layout)

    assert first == second == {0: 4, 1: 1}


def test_relayout_skips_invalid_row_metrics():
    container = _container(**{"grid-auto-rows": "auto", "grid-row-gap": "0px"})

    assert relayout(NodeLayoutContainer(container, {"a-panel": 100})) == {}
    assert relayout(None) == {}


def test_render_pass_callbacks_run_once():
    calls = []
    render_pass = RenderPass()
    render_pass.add_callback(lambda: calls.append("first"))

    assert calls == []
    render_pass.drain()
    render_pass.drain()
    assert calls == ["first"]

    # 排空后登记的回调立即执行
    render_pass.add_callback(lambda: calls.append("late"))
    assert calls == ["first", "late"]


def test_render_pass_settles_after_tasks():
    order = []

    async def content(name, delay):
        await asyncio.sleep(delay)
        order.append(name)

    async def failing():
        raise RuntimeError("boom")

    async def run():
        render_pass = RenderPass("a1")
        render_pass.add_callback(lambda: order.append("callback"))
        render_pass.schedule(content("slow", 0.02))
        render_pass.schedule(content("fast", 0))
        render_pass.schedule(failing())
        assert render_pass.completed is False
        await render_pass.settle()
        return render_pass

    render_pass = asyncio.run(run())

    assert render_pass.completed is True
    assert order == ["callback", "fast", "slow"]
