from __future__ import annotations
import logging
from typing import Optional

from PyQt6.QtCore import QObject, pyqtSlot

from models.gallery_models import GalleryFilter, SpatialRegion
from models.geometry_models import NormalizedRect
from .gallery_handler import GalleryHandler
from .selection_handler import SpatialSelectionController

logger = logging.getLogger(__name__)


class SpatialSearchHandler(QObject):
    """
    範囲選択とギャラリー検索を結び付けるハンドラクラス。

    選択が確定すると、表示中の図面・ページと現在の絞り込み条件で領域検索を開始する。
    選択が解除されると実行中の検索をキャンセルし、結果を破棄する。
    """
    def __init__(self, selection: SpatialSelectionController, gallery: GalleryHandler,
                 blueprint_id: str, current_page: int = 1, parent: Optional[QObject] = None) -> None:
        """
        SpatialSearchHandlerのコンストラクタ。

        Args:
            selection (SpatialSelectionController): 範囲選択の状態機械。
            gallery (GalleryHandler): 検索を実行するギャラリーハンドラ。
            blueprint_id (str): 表示中の図面のID。
            current_page (int): 表示中のページ番号（1始まり）。
            parent (Optional[QObject]): 親オブジェクト。
        """
        super().__init__(parent)
        self.selection = selection
        self.gallery = gallery
        self.blueprint_id = blueprint_id
        self.current_page = current_page
        self.query_filter = GalleryFilter()

        self.selection.selection_changed.connect(self._on_selection_changed)
        self.selection.selection_cleared.connect(self._on_selection_cleared)

    def set_filter(self, query_filter: GalleryFilter) -> None:
        """絞り込み条件を変更する。選択が確定していれば検索し直す。"""
        self.query_filter = query_filter
        rect = self.selection.committed_rect
        if rect is not None:
            self._submit(rect)

    def set_current_page(self, page_number: int) -> None:
        """表示ページを切り替える。選択中の範囲は別ページには引き継がない。"""
        if page_number == self.current_page:
            return
        self.current_page = page_number
        if self.selection.selection.is_active or self.selection.committed_rect is not None:
            self.selection.disable()

    @pyqtSlot(object)
    def _on_selection_changed(self, rect: NormalizedRect) -> None:
        self._submit(rect)

    @pyqtSlot()
    def _on_selection_cleared(self) -> None:
        self.gallery.clear()

    def _submit(self, rect: NormalizedRect) -> None:
        context = SpatialRegion(self.blueprint_id, rect, self.current_page)
        request_id = self.gallery.load(context, self.query_filter)
        logger.debug("領域検索 #%d を開始しました: %r", request_id, context)
