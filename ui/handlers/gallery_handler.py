from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from PyQt6.QtCore import QObject, pyqtSignal, pyqtSlot

from models.gallery_models import (GalleryContext, GalleryFilter, GalleryMediaItem, GalleryQueryResult,
                                   GalleryStatistics)
from services.gallery_service import GalleryQueryEngine
from utils.gallery_fetcher import GalleryFetcherThread

logger = logging.getLogger(__name__)


class GalleryHandler(QObject):
    """
    ギャラリー画面の読み込み状態と表示中の結果を管理するハンドラクラス。

    クエリはワーカースレッドで非同期に実行する。新しいクエリを発行すると実行中の
    クエリはキャンセルされ、リクエスト番号が最新でない結果は届いても破棄される
    （古いクエリの結果が新しい結果を上書きすることはない）。
    ストアの読み込みに失敗した場合は以前の結果を残さず、「読み込めない」状態にする。

    Signals:
        results_changed (pyqtSignal): 最新クエリの結果（GalleryQueryResult）が届いたときに発行される。
        load_failed (pyqtSignal): 最新クエリが失敗したときに、エラーメッセージ（str）とともに発行される。
        loading_changed (pyqtSignal): 読み込み中かどうか（bool）が変わったときに発行される。
        results_cleared (pyqtSignal): clear() により結果が破棄されたときに発行される。
    """
    results_changed = pyqtSignal(object)
    load_failed = pyqtSignal(str)
    loading_changed = pyqtSignal(bool)
    results_cleared = pyqtSignal()

    def __init__(self, engine: GalleryQueryEngine, parent: Optional[QObject] = None) -> None:
        """
        GalleryHandlerのコンストラクタ。

        Args:
            engine (GalleryQueryEngine): クエリを実行するエンジン。
            parent (Optional[QObject]): 親オブジェクト。
        """
        super().__init__(parent)
        self.engine: GalleryQueryEngine = engine
        self.context: Optional[GalleryContext] = None
        self.query_filter: GalleryFilter = GalleryFilter()
        self.result: Optional[GalleryQueryResult] = None
        self.error_message: Optional[str] = None
        self.is_loading: bool = False
        self._latest_request_id: int = 0
        self._workers: Dict[int, GalleryFetcherThread] = {}

    @property
    def latest_request_id(self) -> int:
        return self._latest_request_id

    @property
    def media_items(self) -> Tuple[GalleryMediaItem, ...]:
        return self.result.items if self.result else ()

    @property
    def statistics(self) -> GalleryStatistics:
        return GalleryStatistics.from_items(self.media_items)

    def load(self, context: GalleryContext, query_filter: Optional[GalleryFilter] = None) -> int:
        """
        クエリを非同期で開始し、そのリクエスト番号を返す。
        実行中の以前のクエリはキャンセルされる。
        """
        self._interrupt_workers()
        self._latest_request_id += 1
        request_id = self._latest_request_id
        self.context = context
        if query_filter is not None:
            self.query_filter = query_filter

        worker = GalleryFetcherThread(request_id, self.engine, context, self.query_filter, parent=self)
        worker.result_ready.connect(self._on_result_ready)
        worker.error_occurred.connect(self._on_error_occurred)
        worker.finished.connect(self._on_worker_finished)
        self._workers[request_id] = worker

        logger.debug("ギャラリーリクエスト #%d を開始します: %r", request_id, context)
        self._set_loading(True)
        worker.start()
        return request_id

    def reload(self) -> Optional[int]:
        """現在のコンテキストと絞り込み条件でクエリをやり直す（失敗後の再試行など）。"""
        if self.context is None:
            return None
        return self.load(self.context, self.query_filter)

    def set_filter(self, query_filter: GalleryFilter) -> Optional[int]:
        """絞り込み条件を変更し、コンテキストがあれば再読み込みする。"""
        self.query_filter = query_filter
        return self.reload()

    def cancel(self) -> None:
        """実行中のクエリをキャンセルする。その結果は届いても破棄される。"""
        if self._workers:
            logger.debug("実行中のギャラリーリクエストをキャンセルします: %s", sorted(self._workers))
        self._interrupt_workers()
        # 以降に届く結果はすべて古いものとして扱う
        self._latest_request_id += 1
        self._set_loading(False)

    def clear(self) -> None:
        """クエリをキャンセルし、表示中の結果とコンテキストを破棄する。"""
        self.cancel()
        self.context = None
        self.result = None
        self.error_message = None
        self.results_cleared.emit()

    def wait_for_idle(self, msecs: int = 5000) -> bool:
        """すべてのワーカースレッドの終了を待つ。タイムアウトした場合はFalseを返す。"""
        return all(worker.wait(msecs) for worker in list(self._workers.values()))

    def shutdown(self) -> None:
        """アプリケーション終了時に呼び出す。実行中のクエリを止めてスレッドの終了を待つ。"""
        self.cancel()
        self.wait_for_idle()

    @pyqtSlot(int, object)
    def _on_result_ready(self, request_id: int, result: GalleryQueryResult) -> None:
        """ワーカーから結果が届いたときの処理。最新のリクエスト以外は破棄する。"""
        if request_id != self._latest_request_id:
            logger.debug("古いギャラリーリクエスト #%d の結果を破棄しました。", request_id)
            return
        self.result = result
        self._set_loading(False)
        if result.is_success:
            self.error_message = None
            self.results_changed.emit(result)
        else:
            self.error_message = result.error_message or "ギャラリーを読み込めませんでした。"
            self.load_failed.emit(self.error_message)

    @pyqtSlot(int, str)
    def _on_error_occurred(self, request_id: int, message: str) -> None:
        """ワーカーでエラーが発生したときの処理。以前の結果は残さない。"""
        if request_id != self._latest_request_id:
            logger.debug("古いギャラリーリクエスト #%d のエラーを破棄しました: %s", request_id, message)
            return
        self.result = GalleryQueryResult.failure(message)
        self.error_message = message
        self._set_loading(False)
        self.load_failed.emit(message)

    @pyqtSlot()
    def _on_worker_finished(self) -> None:
        """終了したワーカースレッドを破棄する。"""
        worker = self.sender()
        if isinstance(worker, GalleryFetcherThread):
            self._workers.pop(worker.request_id, None)
            worker.deleteLater()

    def _interrupt_workers(self) -> None:
        for worker in self._workers.values():
            worker.requestInterruption()

    def _set_loading(self, loading: bool) -> None:
        if self.is_loading != loading:
            self.is_loading = loading
            self.loading_changed.emit(loading)
