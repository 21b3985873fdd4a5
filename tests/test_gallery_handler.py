import datetime
import threading

import pytest

from models.blueprint_models import LogCategory
from models.gallery_models import (GalleryFilter, GalleryQueryResult, MediaType, SingleDocument,
                                   WholeProject)
from models.geometry_models import NormalizedPoint
from services.blueprint_store_service import AnnotationStore
from services.gallery_service import GalleryQueryEngine
from ui.handlers.gallery_handler import GalleryHandler
from utils.errors import StoreUnavailable

from conftest import BASE_DATE


class GatedStore(AnnotationStore):
    """プロジェクト単位の取得だけを gate が開くまで待たせるストア。"""

    def __init__(self, inner):
        self.inner = inner
        self.gate = threading.Event()
        self.fail = False

    def annotations_for_document(self, blueprint_id):
        if self.fail:
            raise StoreUnavailable("store offline")
        return self.inner.annotations_for_document(blueprint_id)

    def annotations_for_project(self, project_id):
        self.gate.wait(5)
        return self.inner.annotations_for_project(project_id)

    def get_blueprint(self, blueprint_id):
        return self.inner.get_blueprint(blueprint_id)

    def get_project(self, project_id):
        return self.inner.get_project(project_id)


@pytest.fixture
def gated_store(store, blueprint):
    entry = store.create_log_entry(blueprint.id, 1, NormalizedPoint(0.5, 0.5), "配電盤",
                                   LogCategory.ELECTRICAL, date=BASE_DATE)
    store.add_photo(entry.id, b"photo")
    store.set_video(entry.id, b"video", "panel.mov")
    return GatedStore(store)


@pytest.fixture
def handler(qtbot, gated_store):
    handler = GalleryHandler(GalleryQueryEngine(gated_store))
    yield handler
    gated_store.gate.set()
    handler.shutdown()


def test_only_latest_query_is_applied(qtbot, handler, gated_store, project, blueprint):
    """遅いクエリQ1の後にQ2を発行すると、Q2の結果だけが反映されること。"""
    with qtbot.waitSignal(handler.results_changed, timeout=5000) as blocker:
        first = handler.load(WholeProject(project.id), GalleryFilter(include_videos=False))
        second = handler.load(SingleDocument(blueprint.id), GalleryFilter(include_photos=False))
    assert second > first
    result = blocker.args[0]
    assert [item.media_type for item in result.items] == [MediaType.VIDEO]

    with qtbot.assertNotEmitted(handler.results_changed, wait=300):
        gated_store.gate.set()
        assert handler.wait_for_idle()
    assert handler.result is result
    assert [item.file_name for item in handler.media_items] == ["panel.mov"]


def test_stale_result_is_discarded(qtbot, handler, blueprint):
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    current = handler.result
    stale_id = handler.latest_request_id - 1

    with qtbot.assertNotEmitted(handler.results_changed):
        handler._on_result_ready(stale_id, GalleryQueryResult.success(()))
    with qtbot.assertNotEmitted(handler.load_failed):
        handler._on_error_occurred(stale_id, "late failure")
    assert handler.result is current
    assert handler.error_message is None


def test_loading_state_transitions(qtbot, handler, blueprint):
    states = []
    handler.loading_changed.connect(states.append)
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    assert states == [True, False]
    assert not handler.is_loading


def test_store_failure_clears_previous_results(qtbot, handler, gated_store, blueprint):
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    assert handler.statistics.total_items == 2

    gated_store.fail = True
    with qtbot.waitSignal(handler.load_failed, timeout=5000) as blocker:
        handler.reload()
    assert "store offline" in blocker.args[0]
    assert handler.media_items == ()
    assert handler.error_message == blocker.args[0]
    assert not handler.result.is_success


def test_unknown_blueprint_reports_error(qtbot, handler):
    with qtbot.waitSignal(handler.load_failed, timeout=5000):
        handler.load(SingleDocument("missing"))
    assert handler.media_items == ()
    assert not handler.is_loading


def test_cancel_discards_in_flight_query(qtbot, handler, gated_store, project):
    handler.load(WholeProject(project.id))
    assert handler.is_loading
    with qtbot.assertNotEmitted(handler.results_changed, wait=300):
        handler.cancel()
        gated_store.gate.set()
        assert handler.wait_for_idle()
    assert not handler.is_loading
    assert handler.result is None


def test_clear_resets_state(qtbot, handler, blueprint):
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    with qtbot.waitSignal(handler.results_cleared):
        handler.clear()
    assert handler.media_items == ()
    assert handler.context is None
    assert handler.reload() is None


def test_set_filter_reloads_current_context(qtbot, handler, blueprint):
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    with qtbot.waitSignal(handler.results_changed, timeout=5000) as blocker:
        handler.set_filter(GalleryFilter(categories=frozenset({LogCategory.SAFETY})))
    assert blocker.args[0].items == ()
    assert handler.statistics.total_items == 0


def test_results_are_snapshots(qtbot, handler, store, blueprint):
    """クエリ後にストアを変更しても、取得済みの結果は変わらないこと。"""
    with qtbot.waitSignal(handler.results_changed, timeout=5000):
        handler.load(SingleDocument(blueprint.id))
    entry_id = handler.media_items[0].log_entry.id
    store.update_log_entry(entry_id, title="変更後", date=BASE_DATE + datetime.timedelta(days=1))
    assert handler.media_items[0].log_entry.title == "配電盤"
