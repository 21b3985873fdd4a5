import pytest
from PyQt6.QtCore import QPointF, QSizeF

from models.blueprint_models import LogCategory
from models.gallery_models import GalleryFilter, SpatialRegion
from models.geometry_models import NormalizedPoint
from services.gallery_service import GalleryQueryEngine
from ui.handlers.gallery_handler import GalleryHandler
from ui.handlers.selection_handler import SpatialSelectionController
from ui.handlers.spatial_search_handler import SpatialSearchHandler


@pytest.fixture
def setup(qtbot, store, blueprint):
    inside = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.3, 0.3), "内側", LogCategory.ELECTRICAL)
    store.add_photo(inside.id, b"in")
    outside = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.9, 0.9), "外側", LogCategory.ELECTRICAL)
    store.add_photo(outside.id, b"out")

    selection = SpatialSelectionController(QSizeF(1000, 1000))
    gallery = GalleryHandler(GalleryQueryEngine(store))
    search = SpatialSearchHandler(selection, gallery, blueprint.id, current_page=1)
    yield selection, gallery, search, inside
    gallery.shutdown()


def select(selection, start, end):
    selection.enable()
    selection.begin(QPointF(*start))
    selection.update(QPointF(*end))
    return selection.end()


def test_committed_selection_starts_region_query(qtbot, setup):
    selection, gallery, _, inside = setup
    with qtbot.waitSignal(gallery.results_changed, timeout=5000) as blocker:
        rect = select(selection, (200, 200), (600, 600))
    assert gallery.context == SpatialRegion(gallery.context.blueprint_id, rect, 1)
    assert [item.log_entry.id for item in blocker.args[0].items] == [inside.id]


def test_disable_cancels_and_clears(qtbot, setup):
    selection, gallery, _, _ = setup
    with qtbot.waitSignal(gallery.results_changed, timeout=5000):
        select(selection, (200, 200), (600, 600))
    with qtbot.waitSignal(gallery.results_cleared):
        selection.disable()
    assert gallery.media_items == ()
    assert not gallery.is_loading


def test_page_change_clears_selection(qtbot, setup):
    selection, gallery, search, _ = setup
    with qtbot.waitSignal(gallery.results_changed, timeout=5000):
        select(selection, (200, 200), (600, 600))
    with qtbot.waitSignal(selection.selection_cleared):
        search.set_current_page(2)
    assert selection.committed_rect is None
    assert gallery.context is None


def test_filter_change_requeries_committed_selection(qtbot, setup):
    selection, gallery, search, _ = setup
    with qtbot.waitSignal(gallery.results_changed, timeout=5000):
        select(selection, (200, 200), (600, 600))
    with qtbot.waitSignal(gallery.results_changed, timeout=5000) as blocker:
        search.set_filter(GalleryFilter(categories=frozenset({LogCategory.PLUMBING})))
    assert blocker.args[0].items == ()
