# models/overview_models.py
import datetime
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Tuple

from models.blueprint_models import LogCategory


@dataclass(frozen=True)
class CategoryStat:
    """1つのカテゴリに属する作業記録の集計値。

    Attributes:
        category (LogCategory): 対象カテゴリ。
        count (int): 作業記録の件数（1以上）。
        has_media (bool): 写真または動画を持つ作業記録が1件以上あるか。
        latest_date (datetime.datetime): 最も新しい作業記録の日時。
    """
    category: LogCategory
    count: int
    has_media: bool
    latest_date: datetime.datetime


@dataclass(frozen=True)
class CategoryOverview:
    """図面1枚分のカテゴリ別概要。stats は件数の多い順に並ぶ。"""
    blueprint_id: str
    stats: Tuple[CategoryStat, ...]
    total_entries: int
    entries_with_media: int

    @property
    def categories_present(self) -> FrozenSet[LogCategory]:
        return frozenset(stat.category for stat in self.stats)


class CategoryFilterPreset(str, Enum):
    """カテゴリ絞り込みのプリセット。"""
    ALL = "all"
    CONSTRUCTION = "construction"
    FINISHING = "finishing"
    SAFETY = "safety"
    OTHER = "other"

    def categories(self) -> FrozenSet[LogCategory]:
        """プリセットが対象とするカテゴリの集合を返す。"""
        if self is CategoryFilterPreset.CONSTRUCTION:
            return frozenset(LogCategory.construction_categories())
        if self is CategoryFilterPreset.FINISHING:
            return frozenset(LogCategory.finishing_categories())
        if self is CategoryFilterPreset.SAFETY:
            return frozenset({LogCategory.SAFETY})
        if self is CategoryFilterPreset.OTHER:
            return frozenset(LogCategory.other_categories())
        return LogCategory.all()
