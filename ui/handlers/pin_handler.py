from __future__ import annotations
import logging
import math
from typing import AbstractSet, List, Optional, Tuple, Union

from PyQt6.QtCore import QPointF

from models.blueprint_models import Blueprint, LogCategory, LogEntry
from models.geometry_models import NormalizedRect
from services.blueprint_store_service import BlueprintStoreService
from utils.annotation_index import AnnotationIndex
from utils.coordinate_mapper import CoordinateMapper
from utils.pdf_utils import PDFPageRenderer, ViewTransform

logger = logging.getLogger(__name__)

PinPosition = Tuple[LogEntry, QPointF]


class PinHandler:
    """
    図面ページ上のピン（作業記録）の配置、表示位置の計算、タップ判定を担うハンドラクラス。

    表示座標とページ座標の変換は PDFPageRenderer が、ページ座標と正規化座標の変換は
    CoordinateMapper が行う。作業記録にはズームやスクロールに依存しない正規化座標だけを保存する。
    """
    def __init__(self, store: BlueprintStoreService, hit_radius: float = 22.0) -> None:
        """
        PinHandlerのコンストラクタ。

        Args:
            store (BlueprintStoreService): 作業記録の保存先。
            hit_radius (float): ピンのタップ判定に使う半径（表示ピクセル）。
        """
        self.store: BlueprintStoreService = store
        self.hit_radius: float = hit_radius

    def place_pin(self, blueprint_id: str, page_number: int, view_point: QPointF,
                  transform: ViewTransform, title: str, category: Union[LogCategory, str],
                  notes: str = "") -> LogEntry:
        """
        タップされた表示座標にピンを置き、作業記録を作成する。

        Args:
            blueprint_id (str): 図面のID。
            page_number (int): 表示中のページ番号（1始まり）。
            view_point (QPointF): タップ位置（表示座標）。
            transform (ViewTransform): タップ時のズーム・スクロール状態。
            title (str): タイトル。
            category (Union[LogCategory, str]): カテゴリ。
            notes (str): メモ。

        Returns:
            LogEntry: 作成された作業記録。

        Raises:
            KeyError: 図面が存在しない場合。
            InvalidPageNumber: ページ番号が範囲外の場合。
        """
        blueprint = self.store.get_blueprint(blueprint_id)
        with self._open_renderer(blueprint) as renderer:
            page_point = renderer.view_point_to_page_point(view_point, page_number, transform)
            position = CoordinateMapper.to_normalized(page_point, renderer.page_bounds(page_number))
        entry = self.store.create_log_entry(blueprint_id, page_number, position, title, category, notes)
        logger.info("ピンを配置しました: %s p.%d (%.3f, %.3f)",
                    blueprint.name, page_number, position.x, position.y)
        return entry

    def pin_positions(self, blueprint_id: str, page_number: int,
                      transform: ViewTransform = ViewTransform()) -> List[PinPosition]:
        """指定ページの作業記録と、その表示座標の組を返す。"""
        blueprint = self.store.get_blueprint(blueprint_id)
        entries = AnnotationIndex.for_page(self.store.annotations_for_document(blueprint_id),
                                           page_number, blueprint.page_count)
        with self._open_renderer(blueprint) as renderer:
            bounds = renderer.page_bounds(page_number)
            return [
                (entry, renderer.page_point_to_view_point(
                    CoordinateMapper.to_view_point(entry.position, bounds), page_number, transform))
                for entry in entries
            ]

    def pins_near(self, blueprint_id: str, page_number: int, view_point: QPointF,
                  transform: ViewTransform = ViewTransform(),
                  radius: Optional[float] = None) -> List[LogEntry]:
        """タップ位置から半径内にあるピンを、近い順に返す。"""
        radius = self.hit_radius if radius is None else radius
        hits: List[Tuple[float, LogEntry]] = []
        for entry, position in self.pin_positions(blueprint_id, page_number, transform):
            distance = math.hypot(position.x() - view_point.x(), position.y() - view_point.y())
            if distance <= radius:
                hits.append((distance, entry))
        hits.sort(key=lambda hit: hit[0])
        return [entry for _, entry in hits]

    @staticmethod
    def is_dimmed(entry: LogEntry, search_rect: Optional[NormalizedRect],
                  categories: Optional[AbstractSet[LogCategory]] = None) -> bool:
        """
        範囲検索中にピンを薄く表示すべきかを判定する。

        検索範囲が確定していない場合は常にFalse。確定している場合は、
        範囲外のピン、または検索対象カテゴリに含まれないピンが対象となる。
        """
        if search_rect is None:
            return False
        if not search_rect.contains(entry.x, entry.y):
            return True
        return categories is not None and entry.category not in categories

    @staticmethod
    def _open_renderer(blueprint: Blueprint) -> PDFPageRenderer:
        return PDFPageRenderer.from_bytes(blueprint.pdf_data)
