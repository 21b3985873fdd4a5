import pytest
from PyQt6.QtCore import QPointF

from models.blueprint_models import LogCategory
from models.geometry_models import NormalizedPoint, NormalizedRect
from ui.handlers.pin_handler import PinHandler
from utils.errors import InvalidPageNumber
from utils.pdf_utils import ViewTransform

from conftest import make_entry


@pytest.fixture
def pins(store):
    return PinHandler(store, hit_radius=10)


def test_place_pin_stores_normalized_position(pins, store, blueprint):
    """ズーム・スクロール中のタップ位置が正規化座標で保存されること。"""
    transform = ViewTransform(scale=2.0, offset_x=100, offset_y=50)
    entry = pins.place_pin(blueprint.id, 2, QPointF(512, 742), transform, "分電盤", LogCategory.ELECTRICAL)
    assert entry.page_number == 2
    assert entry.x == pytest.approx(0.5)
    assert entry.y == pytest.approx(0.5)
    assert store.get_log_entry(entry.id).category is LogCategory.ELECTRICAL


def test_place_pin_outside_page_is_clamped(pins, blueprint):
    entry = pins.place_pin(blueprint.id, 1, QPointF(-50, 5000), ViewTransform(), "端", "general")
    assert (entry.x, entry.y) == (0.0, 1.0)


def test_place_pin_on_missing_page_raises(pins, blueprint):
    with pytest.raises(InvalidPageNumber):
        pins.place_pin(blueprint.id, 9, QPointF(10, 10), ViewTransform(), "x", "general")


def test_pin_positions_follow_zoom(pins, store, blueprint):
    store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.25, 0.75), "左下", LogCategory.GENERAL)
    store.create_log_entry(blueprint.id, 2, NormalizedPoint(0.5, 0.5), "別ページ", LogCategory.GENERAL)

    positions = pins.pin_positions(blueprint.id, 1, ViewTransform(scale=2.0))

    assert len(positions) == 1
    entry, point = positions[0]
    assert entry.title == "左下"
    assert point.x() == pytest.approx(306)
    assert point.y() == pytest.approx(1188)


def test_pins_near_returns_closest_first(pins, store, blueprint):
    near = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.5, 0.5), "近い", LogCategory.GENERAL)
    nearer = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.505, 0.5), "もっと近い",
                                    LogCategory.GENERAL)
    store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.9, 0.9), "遠い", LogCategory.GENERAL)

    hits = pins.pins_near(blueprint.id, 1, QPointF(310, 396))

    assert [e.id for e in hits] == [nearer.id, near.id]
    assert pins.pins_near(blueprint.id, 1, QPointF(310, 396), radius=0.5) == []


def test_is_dimmed():
    rect = NormalizedRect(0.2, 0.2, 0.4, 0.4)
    inside = make_entry("in", x=0.3, y=0.3, category=LogCategory.ELECTRICAL)
    outside = make_entry("out", x=0.9, y=0.9, category=LogCategory.ELECTRICAL)
    assert not PinHandler.is_dimmed(outside, None)
    assert not PinHandler.is_dimmed(inside, rect)
    assert PinHandler.is_dimmed(outside, rect)
    assert PinHandler.is_dimmed(inside, rect, {LogCategory.PLUMBING})
    assert not PinHandler.is_dimmed(inside, rect, {LogCategory.ELECTRICAL})
