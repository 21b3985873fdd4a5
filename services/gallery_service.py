# services/gallery_service.py
import logging
from typing import Callable, Iterable, List, Optional

from .blueprint_store_service import AnnotationStore
from models.blueprint_models import LogEntry
from models.gallery_models import (GalleryContext, GalleryFilter, GalleryMediaItem, GalleryQueryResult,
                                   GalleryStatistics, MediaType, SingleDocument, SpatialRegion,
                                   WholeProject)
from utils.annotation_index import AnnotationIndex
from utils.errors import QueryCancelled, StoreUnavailable

logger = logging.getLogger(__name__)

CancelCheck = Callable[[], bool]


def expand_media(entries: Iterable[LogEntry], include_photos: bool = True,
                 include_videos: bool = True) -> List[GalleryMediaItem]:
    """作業記録を写真・動画ごとのメディア項目に展開する。

    1件の作業記録につき、写真は添付順に1件ずつ、動画は最後に1件となる。
    指定された種類のメディアを持たない作業記録は何も生成しない。

    Args:
        entries (Iterable[LogEntry]): 展開する作業記録。
        include_photos (bool): 写真を含めるかどうか。
        include_videos (bool): 動画を含めるかどうか。

    Returns:
        List[GalleryMediaItem]: 展開されたメディア項目（作業記録の順序を保つ）。
    """
    items: List[GalleryMediaItem] = []
    for entry in entries:
        if include_photos:
            for index, photo in enumerate(entry.photos):
                items.append(GalleryMediaItem(
                    log_entry=entry, media_type=MediaType.PHOTO, data=photo,
                    file_name=f"photo_{index + 1}.jpg", index=index,
                ))
        if include_videos and entry.video is not None:
            items.append(GalleryMediaItem(
                log_entry=entry, media_type=MediaType.VIDEO, data=entry.video.data,
                file_name=entry.video.file_name,
            ))
    return items


def summarize_media(entries: Iterable[LogEntry]) -> GalleryStatistics:
    """作業記録群の全メディアについて、総数・写真数・動画数・カテゴリ別件数を集計する。"""
    return GalleryStatistics.from_items(tuple(expand_media(entries)))


class GalleryQueryEngine:
    """ギャラリーに表示するメディア一覧を、コンテキストと絞り込み条件から生成するクラス。

    処理の流れ:
        1. コンテキストに応じて候補の作業記録を取得する（取得時点のコピー）。
        2. カテゴリ、日時範囲の順に絞り込む。
        3. 写真・動画ごとのメディア項目に展開する（メディア種別の絞り込みは展開後に効く）。
        4. 元の作業記録の日時で新しい順に並べる（同時刻は展開順を保つ）。

    ストアの取得に失敗した場合は例外を送出せず、失敗状態の結果を返す。
    自動的な再試行は行わない。
    """

    def __init__(self, store: AnnotationStore) -> None:
        """GalleryQueryEngineのコンストラクタ。

        Args:
            store (AnnotationStore): 作業記録の取得元。
        """
        self.store = store

    def run(self, context: GalleryContext, query_filter: Optional[GalleryFilter] = None,
            is_cancelled: Optional[CancelCheck] = None) -> GalleryQueryResult:
        """クエリを実行し、日時の新しい順に並んだメディア一覧を返す。

        Args:
            context (GalleryContext): 検索対象（プロジェクト全体・単一図面・図面上の領域）。
            query_filter (Optional[GalleryFilter]): 絞り込み条件。省略時はすべて表示。
            is_cancelled (Optional[Callable[[], bool]]): キャンセル判定。True を返した時点で中断する。

        Returns:
            GalleryQueryResult: 結果。ストアが利用できない場合は失敗状態（items は空）。

        Raises:
            QueryCancelled: 実行中にキャンセルされた場合。部分的な結果は返さない。
            InvalidPageNumber: SpatialRegion のページ番号が図面の範囲外の場合。
            KeyError: 存在しないプロジェクト・図面が指定された場合。
        """
        query_filter = query_filter or GalleryFilter()
        check_cancel = is_cancelled or (lambda: False)

        self._raise_if_cancelled(check_cancel)
        try:
            candidates = self._fetch_candidates(context)
        except StoreUnavailable as e:
            logger.warning("ギャラリーの読み込みに失敗しました: %s", e)
            return GalleryQueryResult.failure(str(e))
        self._raise_if_cancelled(check_cancel)

        entries = AnnotationIndex.by_category(candidates, query_filter.categories)
        entries = AnnotationIndex.by_date_range(entries, query_filter.date_range)
        items = expand_media(entries, query_filter.include_photos, query_filter.include_videos)
        items.sort(key=lambda item: item.date, reverse=True)

        self._raise_if_cancelled(check_cancel)
        logger.debug("ギャラリークエリ完了: 候補%d件 → 作業記録%d件 → メディア%d件",
                     len(candidates), len(entries), len(items))
        return GalleryQueryResult.success(tuple(items))

    def context_title(self, context: GalleryContext) -> str:
        """ギャラリー画面の見出しに使うタイトルを返す。"""
        if isinstance(context, SpatialRegion):
            blueprint = self.store.get_blueprint(context.blueprint_id)
            return f"{blueprint.name} - Page {context.page} Area"
        if isinstance(context, SingleDocument):
            return self.store.get_blueprint(context.blueprint_id).name
        return self.store.get_project(context.project_id).name

    def _fetch_candidates(self, context: GalleryContext) -> List[LogEntry]:
        if isinstance(context, WholeProject):
            return list(self.store.annotations_for_project(context.project_id))
        if isinstance(context, SingleDocument):
            return list(self.store.annotations_for_document(context.blueprint_id))
        if isinstance(context, SpatialRegion):
            blueprint = self.store.get_blueprint(context.blueprint_id)
            entries = self.store.annotations_for_document(context.blueprint_id)
            on_page = AnnotationIndex.for_page(entries, context.page, blueprint.page_count)
            return AnnotationIndex.within_rect(on_page, context.rect)
        raise TypeError(f"未対応のギャラリーコンテキストです: {context!r}")

    @staticmethod
    def _raise_if_cancelled(check_cancel: CancelCheck) -> None:
        if check_cancel():
            raise QueryCancelled("ギャラリークエリがキャンセルされました。")
