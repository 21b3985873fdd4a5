# services/category_overview_service.py
import logging
from collections import defaultdict
from typing import Dict, FrozenSet, List, Union

from .blueprint_store_service import AnnotationStore
from models.blueprint_models import LogCategory, LogEntry
from models.overview_models import CategoryFilterPreset, CategoryOverview, CategoryStat

logger = logging.getLogger(__name__)


class CategoryOverviewService:
    """図面ごとの作業記録をカテゴリ別に集計するサービスクラス。"""

    def __init__(self, store: AnnotationStore) -> None:
        """CategoryOverviewServiceのコンストラクタ。

        Args:
            store (AnnotationStore): 作業記録の取得元。
        """
        self.store = store

    def overview(self, blueprint_id: str) -> CategoryOverview:
        """指定図面のカテゴリ別概要を返す。

        作業記録が1件もないカテゴリは含めない。件数が同じカテゴリは LogCategory の定義順に並ぶ。

        Args:
            blueprint_id (str): 対象図面のID。

        Returns:
            CategoryOverview: カテゴリ別の件数・メディア有無・最新日時と全体の集計。

        Raises:
            KeyError: 図面が存在しない場合。
            StoreUnavailable: ストアから取得できない場合。
        """
        entries = self.store.annotations_for_document(blueprint_id)
        grouped: Dict[LogCategory, List[LogEntry]] = defaultdict(list)
        for entry in entries:
            grouped[entry.category].append(entry)

        stats = [
            CategoryStat(
                category=category,
                count=len(grouped[category]),
                has_media=any(entry.has_media for entry in grouped[category]),
                latest_date=max(entry.date for entry in grouped[category]),
            )
            for category in LogCategory if category in grouped
        ]
        stats.sort(key=lambda stat: stat.count, reverse=True)
        logger.debug("図面 %s のカテゴリ概要: %d件 / %dカテゴリ", blueprint_id, len(entries), len(stats))
        return CategoryOverview(
            blueprint_id=blueprint_id,
            stats=tuple(stats),
            total_entries=len(entries),
            entries_with_media=sum(1 for entry in entries if entry.has_media),
        )

    def preset_categories(self, blueprint_id: str,
                          preset: Union[CategoryFilterPreset, str]) -> FrozenSet[LogCategory]:
        """プリセットの対象カテゴリのうち、指定図面に作業記録があるものを返す。

        Raises:
            ValueError: プリセット名が不正な場合。
        """
        present = self.overview(blueprint_id).categories_present
        return CategoryFilterPreset(preset).categories() & present
