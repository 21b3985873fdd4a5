# models/gallery_models.py
import datetime
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union

from models.blueprint_models import LogCategory, LogEntry, ensure_aware
from models.geometry_models import NormalizedRect


@dataclass(frozen=True)
class DateInterval:
    """日時の閉区間 [start, end]。どちらかが None の場合はその側を無制限とする。

    Attributes:
        start (Optional[datetime.datetime]): 区間の開始（含む）。
        end (Optional[datetime.datetime]): 区間の終了（含む）。
    """
    start: Optional[datetime.datetime] = None
    end: Optional[datetime.datetime] = None

    def __post_init__(self) -> None:
        if self.start is not None:
            object.__setattr__(self, "start", ensure_aware(self.start))
        if self.end is not None:
            object.__setattr__(self, "end", ensure_aware(self.end))
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"開始日時が終了日時より後です: {self.start} > {self.end}")

    def contains(self, moment: datetime.datetime) -> bool:
        moment = ensure_aware(moment)
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


@dataclass(frozen=True)
class WholeProject:
    """プロジェクト内の全図面を対象とするギャラリーコンテキスト。"""
    project_id: str


@dataclass(frozen=True)
class SingleDocument:
    """単一の図面を対象とするギャラリーコンテキスト。"""
    blueprint_id: str


@dataclass(frozen=True)
class SpatialRegion:
    """図面の特定ページ上の矩形領域を対象とするギャラリーコンテキスト。

    Attributes:
        blueprint_id (str): 対象図面のID。
        rect (NormalizedRect): 検索領域（正規化座標）。
        page (int): 対象ページ番号（1始まり）。
    """
    blueprint_id: str
    rect: NormalizedRect
    page: int


GalleryContext = Union[WholeProject, SingleDocument, SpatialRegion]


@dataclass(frozen=True)
class GalleryFilter:
    """ギャラリー表示の絞り込み条件。

    Attributes:
        categories (FrozenSet[LogCategory]): 表示するカテゴリ。既定は全カテゴリ。
            空集合の場合は何も表示しない（「絞り込みなし」ではない）。
        date_range (Optional[DateInterval]): 日時範囲。None の場合は無制限。
        include_photos (bool): 写真を含めるかどうか。
        include_videos (bool): 動画を含めるかどうか。
    """
    categories: FrozenSet[LogCategory] = field(default_factory=LogCategory.all)
    date_range: Optional[DateInterval] = None
    include_photos: bool = True
    include_videos: bool = True


class MediaType(str, Enum):
    PHOTO = "photo"
    VIDEO = "video"


@dataclass(frozen=True)
class GalleryMediaItem:
    """ギャラリーに表示する写真・動画1件分のデータモデル。

    Attributes:
        log_entry (LogEntry): 元になった作業記録（取得時点のスナップショット）。
        media_type (MediaType): 写真か動画か。
        data (bytes): メディアデータ。
        file_name (str): 表示用ファイル名。
        index (int): 元の作業記録内での写真の順番（動画は0）。
    """
    log_entry: LogEntry
    media_type: MediaType
    data: bytes
    file_name: str
    index: int = 0

    @property
    def date(self) -> datetime.datetime:
        return self.log_entry.date

    @property
    def category(self) -> LogCategory:
        return self.log_entry.category

    @property
    def title(self) -> str:
        return self.log_entry.display_title


@dataclass(frozen=True)
class GalleryStatistics:
    """ギャラリー結果から導出される集計値。"""
    total_items: int
    photo_count: int
    video_count: int
    count_by_category: Dict[LogCategory, int]

    @classmethod
    def from_items(cls, items: Tuple[GalleryMediaItem, ...]) -> "GalleryStatistics":
        photo_count = sum(1 for item in items if item.media_type is MediaType.PHOTO)
        return cls(
            total_items=len(items),
            photo_count=photo_count,
            video_count=len(items) - photo_count,
            count_by_category=dict(Counter(item.category for item in items)),
        )


class GalleryQueryStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


@dataclass(frozen=True)
class GalleryQueryResult:
    """ギャラリークエリの実行結果。

    ストアの取得に失敗した場合は status が FAILED となり、items は常に空になる
    （部分的な結果は返さない）。「該当なし」は status が OK で items が空の状態。

    Attributes:
        status (GalleryQueryStatus): 実行結果の状態。
        items (Tuple[GalleryMediaItem, ...]): 日時の新しい順に並んだメディア。
        error_message (Optional[str]): 失敗時のメッセージ。
    """
    status: GalleryQueryStatus
    items: Tuple[GalleryMediaItem, ...] = ()
    error_message: Optional[str] = None

    @classmethod
    def success(cls, items: Tuple[GalleryMediaItem, ...]) -> "GalleryQueryResult":
        return cls(status=GalleryQueryStatus.OK, items=tuple(items))

    @classmethod
    def failure(cls, message: str) -> "GalleryQueryResult":
        return cls(status=GalleryQueryStatus.FAILED, items=(), error_message=message)

    @property
    def is_success(self) -> bool:
        return self.status is GalleryQueryStatus.OK

    @property
    def statistics(self) -> GalleryStatistics:
        return GalleryStatistics.from_items(self.items)
