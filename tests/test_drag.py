import itertools
from datetime import date

import pytest

from milestone_graph.core.graph.store import GraphStore
from milestone_graph.core.layout.layout_engine import compute_layout
from milestone_graph.core.model import AUTO, Manual, Milestone, Project
from milestone_graph.core.viewport.drag import NodeDrag, PanDrag
from milestone_graph.core.viewport.viewport import Viewport


def _store() -> GraphStore:
    ms = (
        Milestone(id="M1", name="one", estimated_duration=5),
        Milestone(id="M2", name="two", estimated_duration=3, depends_on=("M1",)),
    )
    project = Project(id="p", name="p", start_date=date(2024, 1, 1), milestones=ms)
    counter = itertools.count(1)
    return GraphStore(project, clock=lambda: 1, id_factory=lambda: f"n{next(counter)}")


def test_pan_drag_accumulates_screen_deltas():
    vp = Viewport(width=1280, height=800, pan_x=5, pan_y=5, zoom=2)
    drag = PanDrag.start(vp, 10, 10)
    assert drag.update(30, 50) == (25, 45)
    assert drag.commit(40, 50) == (35, 45)


def test_node_drag_divides_screen_delta_by_zoom():
    store = _store()
    vp = Viewport(width=1280, height=800, zoom=2)
    drag = NodeDrag.start(compute_layout(store.milestones), vp, "M1", 100, 100)
    assert drag is not None
    assert drag.update(300, 60) == pytest.approx((500, 880))

    outcome = drag.commit(store, 300, 60)
    assert not outcome.clicked
    assert outcome.moved == ["M1"]
    assert store.milestone("M1").placement == Manual(500, 880)


def test_small_movement_counts_as_click():
    store = _store()
    vp = Viewport(width=1280, height=800)
    drag = NodeDrag.start(compute_layout(store.milestones), vp, "M1", 100, 100)
    outcome = drag.commit(store, 103, 98)
    assert outcome.clicked
    assert outcome.moved == []
    assert store.milestone("M1").placement == AUTO


def test_node_drag_with_descendants():
    store = _store()
    vp = Viewport(width=1280, height=800)
    drag = NodeDrag.start(compute_layout(store.milestones), vp, "M1", 0, 0)
    outcome = drag.commit(store, 50, -20, include_descendants=True)
    assert sorted(outcome.moved) == ["M1", "M2"]
    assert store.milestone("M2").placement == Manual(760 + 50, 900 - 20)


def test_node_drag_unknown_id():
    store = _store()
    vp = Viewport(width=1280, height=800)
    assert NodeDrag.start(compute_layout(store.milestones), vp, "NOPE", 0, 0) is None
