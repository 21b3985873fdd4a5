# services/timeline_service.py
import datetime
from typing import AbstractSet, List, Optional, Tuple

from .blueprint_store_service import AnnotationStore
from models.blueprint_models import LogCategory, LogEntry
from utils.annotation_index import AnnotationIndex
from utils.date_utils import DateRangePreset

TimelineSection = Tuple[datetime.date, List[LogEntry]]


class TimelineService:
    """プロジェクト全体の作業記録を時系列で一覧するためのサービスクラス。

    期間プリセット・カテゴリ・キーワードで絞り込み、新しい順に並べて日付ごとにまとめる。
    """

    def __init__(self, store: AnnotationStore) -> None:
        """TimelineServiceのコンストラクタ。

        Args:
            store (AnnotationStore): 作業記録の取得元。
        """
        self.store = store

    def filtered_entries(self, project_id: str,
                         date_range: DateRangePreset = DateRangePreset.ALL,
                         categories: Optional[AbstractSet[LogCategory]] = None,
                         search_text: str = "",
                         now: Optional[datetime.datetime] = None) -> List[LogEntry]:
        """条件に一致する作業記録を新しい順に返す。

        Args:
            project_id (str): 対象プロジェクトのID。
            date_range (DateRangePreset): 期間プリセット。
            categories (Optional[AbstractSet[LogCategory]]): 表示するカテゴリ。None の場合は全カテゴリ。
            search_text (str): タイトル・メモに対するキーワード。空の場合は絞り込まない。
            now (Optional[datetime.datetime]): 期間計算の基準時刻。省略時は現在時刻（UTC）。

        Returns:
            List[LogEntry]: 絞り込み・並べ替え済みの作業記録。
        """
        now = now or datetime.datetime.now(datetime.timezone.utc)
        entries = self.store.annotations_for_project(project_id)
        entries = AnnotationIndex.by_date_range(entries, date_range.to_interval(now))
        entries = AnnotationIndex.by_category(entries, LogCategory.all() if categories is None else categories)
        entries = AnnotationIndex.matching_text(entries, search_text)
        return AnnotationIndex.sorted_by_date_descending(entries)

    def grouped_by_day(self, project_id: str, tzinfo: Optional[datetime.tzinfo] = None,
                       **filters) -> List[TimelineSection]:
        """filtered_entries の結果を日付ごとにまとめ、新しい日付から順に返す。

        Args:
            project_id (str): 対象プロジェクトのID。
            tzinfo (Optional[datetime.tzinfo]): 日付の区切りに使うタイムゾーン。None の場合はローカル時刻。
            **filters: filtered_entries に渡す絞り込み条件。

        Returns:
            List[TimelineSection]: (日付, その日の作業記録) の一覧。
        """
        sections: List[TimelineSection] = []
        for entry in self.filtered_entries(project_id, **filters):
            day = entry.date.astimezone(tzinfo).date()
            if sections and sections[-1][0] == day:
                sections[-1][1].append(entry)
            else:
                sections.append((day, [entry]))
        return sections
