from __future__ import annotations
import logging
from typing import Optional

from PyQt6.QtCore import QObject, QPointF, QRectF, QSizeF, pyqtSignal

from models.geometry_models import NormalizedRect
from models.selection_models import (MIN_SELECTION_SIZE, SelectionState, SpatialSelection,
                                     is_selection_large_enough)
from utils.coordinate_mapper import CoordinateMapper

logger = logging.getLogger(__name__)


class SpatialSelectionController(QObject):
    """
    図面上での矩形ドラッグによる範囲選択を管理する状態機械。

    具体的なマウス・タッチイベントからは切り離されており、UI層から
    begin(point) / update(point) / end() の呼び出しを受け取る。
    状態に合わない呼び出しは例外を送出せずに無視する。

    状態遷移:
        INACTIVE --enable()--> AWAITING_DRAG --begin()--> DRAGGING
        DRAGGING --end()--> INACTIVE（選択を確定）
        DRAGGING --end()--> AWAITING_DRAG（最小サイズ未満のため破棄）
        任意の状態 --disable()--> INACTIVE

    Signals:
        selection_changed (pyqtSignal): 選択が確定したときに、NormalizedRect とともに発行される。
        selection_cleared (pyqtSignal): disable() により選択が解除されたときに発行される。
    """
    selection_changed = pyqtSignal(object)
    selection_cleared = pyqtSignal()

    def __init__(self, surface_size: QSizeF, min_size: float = MIN_SELECTION_SIZE,
                 parent: Optional[QObject] = None) -> None:
        """
        SpatialSelectionControllerのコンストラクタ。

        Args:
            surface_size (QSizeF): 選択を描画する面（画面上のオーバーレイ）の大きさ。
            min_size (float): 確定に必要な最小の幅・高さ（正規化単位、この値を超える必要がある）。
            parent (Optional[QObject]): 親オブジェクト。
        """
        super().__init__(parent)
        self.surface_size: QSizeF = QSizeF(surface_size)
        self.min_size: float = min_size
        self._state: SelectionState = SelectionState.INACTIVE
        self._anchor: Optional[QPointF] = None
        self._current_rect: Optional[QRectF] = None
        self._committed_rect: Optional[NormalizedRect] = None

    @property
    def state(self) -> SelectionState:
        return self._state

    @property
    def current_rect(self) -> Optional[QRectF]:
        """ドラッグ中の矩形（描画面の座標）。ドラッグ中でなければNone。"""
        return QRectF(self._current_rect) if self._current_rect is not None else None

    @property
    def committed_rect(self) -> Optional[NormalizedRect]:
        return self._committed_rect

    @property
    def selection(self) -> SpatialSelection:
        return SpatialSelection(rect=self._committed_rect,
                                is_active=self._state is not SelectionState.INACTIVE)

    def set_surface_size(self, surface_size: QSizeF) -> None:
        """描画面の大きさを更新する（ウィンドウのリサイズ時など）。"""
        self.surface_size = QSizeF(surface_size)

    def enable(self) -> None:
        """検索モードを有効にし、ドラッグ待ちにする。"""
        if self._state is SelectionState.INACTIVE:
            self._state = SelectionState.AWAITING_DRAG

    def begin(self, point: QPointF) -> None:
        """ドラッグを開始する。以前に確定した選択は破棄される。"""
        if self._state is not SelectionState.AWAITING_DRAG:
            logger.debug("状態 %s では begin を無視します。", self._state.value)
            return
        self._anchor = QPointF(point)
        self._current_rect = QRectF(self._anchor, self._anchor)
        self._committed_rect = None
        self._state = SelectionState.DRAGGING

    def update(self, point: QPointF) -> None:
        """ドラッグ中の矩形を、起点と現在位置を対角とする矩形に更新する。"""
        if self._state is not SelectionState.DRAGGING or self._anchor is None:
            return
        left = min(self._anchor.x(), point.x())
        top = min(self._anchor.y(), point.y())
        right = max(self._anchor.x(), point.x())
        bottom = max(self._anchor.y(), point.y())
        self._current_rect = QRectF(left, top, right - left, bottom - top)

    def end(self) -> Optional[NormalizedRect]:
        """
        ドラッグを終了し、矩形を正規化して確定する。

        Returns:
            Optional[NormalizedRect]: 確定した選択矩形。小さすぎて破棄された場合や、
            ドラッグ中でなかった場合はNone。

        Raises:
            InvalidPageBounds: 描画面の大きさが不正な場合。
        """
        if self._state is not SelectionState.DRAGGING or self._current_rect is None:
            return None
        rect = CoordinateMapper.to_normalized_rect(self._current_rect, self.surface_size)
        self._anchor = None
        self._current_rect = None

        if not is_selection_large_enough(rect, self.min_size):
            logger.debug("選択範囲が小さすぎるため破棄しました: %r", rect)
            self._state = SelectionState.AWAITING_DRAG
            return None

        self._committed_rect = rect
        self._state = SelectionState.INACTIVE
        self.selection_changed.emit(rect)
        return rect

    def cancel_drag(self) -> None:
        """ドラッグ中の操作だけを取り消し、ドラッグ待ちに戻す。確定済みの選択は変更しない。"""
        if self._state is SelectionState.DRAGGING:
            self._anchor = None
            self._current_rect = None
            self._state = SelectionState.AWAITING_DRAG

    def disable(self) -> None:
        """選択モードを終了し、ドラッグ中の操作と確定済みの選択をすべて破棄する。"""
        self._anchor = None
        self._current_rect = None
        self._committed_rect = None
        self._state = SelectionState.INACTIVE
        self.selection_cleared.emit()
