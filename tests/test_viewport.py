import pytest

from milestone_graph.core.viewport.viewport import Minimap, Viewport, recenter_from_minimap


def test_set_zoom_clamps_to_bounds():
    vp = Viewport(width=1280, height=800)
    assert vp.set_zoom(10) == 3.0
    assert vp.set_zoom(0.01) == 0.1
    assert vp.set_zoom(1.5) == 1.5


def test_set_zoom_rejects_non_positive():
    vp = Viewport(width=1280, height=800)
    with pytest.raises(ValueError):
        vp.set_zoom(0)


def test_screen_content_mapping_is_inverse():
    vp = Viewport(width=1280, height=800, pan_x=-120, pan_y=35, zoom=0.75)
    sx, sy = vp.content_to_screen(400, 900)
    assert vp.screen_to_content(sx, sy) == pytest.approx((400, 900))


def test_zoom_by_keeps_anchor_fixed():
    vp = Viewport(width=1280, height=800, pan_x=10, pan_y=20)
    before = vp.screen_to_content(640, 400)
    vp.zoom_by(1.25, 640, 400)
    assert vp.zoom == pytest.approx(1.25)
    assert vp.screen_to_content(640, 400) == pytest.approx(before)


def test_center_on_resets_zoom_and_anchors_point():
    vp = Viewport(width=1280, height=800, zoom=2)
    vp.center_on(400, 900)
    assert vp.zoom == 1
    assert (vp.pan_x, vp.pan_y) == pytest.approx((256 - 400, 400 - 900))
    assert vp.content_to_screen(400, 900) == pytest.approx((256, 400))


def test_fit_to_extents_never_zooms_in():
    vp = Viewport(width=1280, height=800)
    zoom = vp.fit_to_extents(2500, 1800)
    assert zoom == pytest.approx(800 / 1800)
    assert vp.pan_x == pytest.approx((1280 - 2500 * zoom) / 2)
    assert vp.pan_y == pytest.approx(0)

    small = Viewport(width=1280, height=800)
    assert small.fit_to_extents(300, 200) == 1.0
    assert (small.pan_x, small.pan_y) == pytest.approx((490, 300))


def test_fit_to_extents_ignores_zero_sized_viewport():
    vp = Viewport(width=0, height=800, zoom=0.5)
    assert vp.fit_to_extents(2500, 1800) == 0.5


def test_minimap_scale_and_offsets():
    mm = Minimap(2500, 1800)
    assert mm.scale == pytest.approx(160 / 1800)
    assert mm.offset_x == pytest.approx((240 - 2500 * 160 / 1800) / 2)
    assert mm.offset_y == pytest.approx(0)


def test_minimap_mapping_round_trips():
    mm = Minimap(3000, 1800)
    for point in [(0, 0), (400, 900), (2999, 1799)]:
        mx, my = mm.content_to_minimap(*point)
        assert 0 <= mx <= 240 and 0 <= my <= 160
        assert mm.minimap_to_content(mx, my) == pytest.approx(point)


def test_viewport_rect_tracks_pan_and_zoom():
    mm = Minimap(2500, 1800)
    vp = Viewport(width=1280, height=800)
    x, y, w, h = mm.viewport_rect(vp)
    assert (x, y) == pytest.approx(mm.content_to_minimap(0, 0))
    assert (w, h) == pytest.approx((1280 * mm.scale, 800 * mm.scale))

    vp.set_zoom(2)
    vp.set_pan(-400, -200)
    x, y, w, h = mm.viewport_rect(vp)
    assert (x, y) == pytest.approx(mm.content_to_minimap(200, 100))
    assert (w, h) == pytest.approx((640 * mm.scale, 400 * mm.scale))


def test_recenter_from_minimap_centres_clicked_point():
    mm = Minimap(2500, 1800)
    vp = Viewport(width=1280, height=800, zoom=0.5)
    mx, my = mm.content_to_minimap(1000, 600)
    cx, cy = recenter_from_minimap(vp, mm, mx, my)
    assert (cx, cy) == pytest.approx((1000, 600))
    assert vp.content_to_screen(1000, 600) == pytest.approx((640, 400))
    assert vp.zoom == 0.5


def test_resize_changes_fit():
    vp = Viewport(width=1280, height=800)
    vp.resize(2500, 1800)
    assert vp.fit_to_extents(2500, 1800) == 1.0
