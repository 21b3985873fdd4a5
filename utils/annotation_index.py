# utils/annotation_index.py
"""作業記録のコレクションに対する、ページ・カテゴリ・日時・空間による絞り込み機能を提供します。"""

import math
from typing import AbstractSet, Iterable, List, Optional

from models.blueprint_models import LogCategory, LogEntry
from models.gallery_models import DateInterval
from models.geometry_models import NormalizedRect
from utils.errors import InvalidPageNumber


class AnnotationIndex:
    """作業記録のリストから絞り込んだ新しいリストを返すユーティリティクラス。

    すべての操作は純粋関数であり、入力コレクションを変更しない。
    複数の絞り込みを組み合わせる場合は、呼び出し側で順に適用する（論理積）。
    """

    @staticmethod
    def for_page(entries: Iterable[LogEntry], page: int, page_count: Optional[int] = None) -> List[LogEntry]:
        """指定ページの作業記録のみを返す。

        Args:
            entries (Iterable[LogEntry]): 図面の全作業記録。
            page (int): ページ番号（1始まり）。
            page_count (Optional[int]): 図面の総ページ数。指定された場合は上限も検証する。

        Returns:
            List[LogEntry]: page_number が一致する作業記録。

        Raises:
            InvalidPageNumber: ページ番号が [1, page_count] の範囲外の場合。
        """
        if page < 1 or (page_count is not None and page > page_count):
            raise InvalidPageNumber(page, page_count)
        return [entry for entry in entries if entry.page_number == page]

    @staticmethod
    def by_category(entries: Iterable[LogEntry], categories: AbstractSet[LogCategory]) -> List[LogEntry]:
        """カテゴリが categories に含まれる作業記録を返す。空集合の場合は空リストになる。"""
        return [entry for entry in entries if entry.category in categories]

    @staticmethod
    def by_date_range(entries: Iterable[LogEntry], date_range: Optional[DateInterval]) -> List[LogEntry]:
        """日時が区間内（両端を含む）の作業記録を返す。date_range が None の場合はそのまま返す。"""
        if date_range is None:
            return list(entries)
        return [entry for entry in entries if date_range.contains(entry.date)]

    @staticmethod
    def within_rect(entries: Iterable[LogEntry], rect: NormalizedRect) -> List[LogEntry]:
        """位置が矩形内（境界を含む）にある作業記録を返す。

        作業記録は点として扱うため、判定は点の包含のみで面積の交差は考慮しない。
        """
        return [entry for entry in entries if rect.contains(entry.x, entry.y)]

    @staticmethod
    def near_point(entries: Iterable[LogEntry], x: float, y: float, radius: float) -> List[LogEntry]:
        """点 (x, y) からのユークリッド距離が radius 以下の作業記録を返す（正規化単位）。"""
        return [entry for entry in entries if math.hypot(entry.x - x, entry.y - y) <= radius]

    @staticmethod
    def matching_text(entries: Iterable[LogEntry], text: str) -> List[LogEntry]:
        """タイトルまたはメモに text を含む作業記録を返す（大文字・小文字を区別しない）。"""
        needle = text.strip().casefold()
        if not needle:
            return list(entries)
        return [
            entry for entry in entries
            if needle in entry.title.casefold() or needle in entry.notes.casefold()
        ]

    @staticmethod
    def with_media(entries: Iterable[LogEntry]) -> List[LogEntry]:
        """写真または動画を1件以上持つ作業記録を返す。"""
        return [entry for entry in entries if entry.has_media]

    @staticmethod
    def sorted_by_date_descending(entries: Iterable[LogEntry]) -> List[LogEntry]:
        """日時の新しい順に並べ替える。同時刻の場合は元の順序を保つ（安定ソート）。"""
        return sorted(entries, key=lambda entry: entry.date, reverse=True)
