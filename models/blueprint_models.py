# models/blueprint_models.py
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

from models.geometry_models import NormalizedPoint
from utils.errors import InvalidPageNumber


def utc_now() -> datetime.datetime:
    """タイムゾーン付きの現在時刻（UTC）を返す。"""
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_aware(moment: datetime.datetime) -> datetime.datetime:
    """タイムゾーンなしの日時をローカル時刻とみなし、UTCのタイムゾーン付き日時へ変換する。

    タイムゾーン付きの日時はそのまま返す。
    """
    if moment.tzinfo is None or moment.tzinfo.utcoffset(moment) is None:
        return moment.astimezone(datetime.timezone.utc)
    return moment


class LogCategory(str, Enum):
    """作業記録（ピン）に付与するカテゴリ。閉じた12種類の集合。"""
    ELECTRICAL = "electrical"
    PLUMBING = "plumbing"
    STRUCTURAL = "structural"
    HVAC = "hvac"
    INSULATION = "insulation"
    FLOORING = "flooring"
    ROOFING = "roofing"
    WINDOWS = "windows"
    DOORS = "doors"
    FINISHES = "finishes"
    SAFETY = "safety"
    GENERAL = "general"

    @classmethod
    def all(cls) -> frozenset:
        return frozenset(cls)

    @classmethod
    def construction_categories(cls) -> List["LogCategory"]:
        """躯体・設備工事系のカテゴリ。"""
        return [cls.STRUCTURAL, cls.ELECTRICAL, cls.PLUMBING, cls.HVAC, cls.INSULATION, cls.ROOFING]

    @classmethod
    def finishing_categories(cls) -> List["LogCategory"]:
        """仕上げ工事系のカテゴリ。"""
        return [cls.FLOORING, cls.WINDOWS, cls.DOORS, cls.FINISHES]

    @classmethod
    def other_categories(cls) -> List["LogCategory"]:
        return [cls.SAFETY, cls.GENERAL]


@dataclass
class Project:
    """建設プロジェクトを表現するデータモデル。

    Attributes:
        id (str): プロジェクトの一意なID。
        name (str): プロジェクト名。
        description (str): 説明文。
        client_name (str): 施主（クライアント）名。
        location (str): 現場所在地。
        created_at (datetime.datetime): 作成日時。
        modified_at (datetime.datetime): 最終更新日時。
        is_archived (bool): アーカイブ済みかどうか。
        blueprint_ids (List[str]): 所有する図面のID（追加順）。
    """
    id: str
    name: str
    description: str = ""
    client_name: str = ""
    location: str = ""
    created_at: datetime.datetime = field(default_factory=utc_now)
    modified_at: datetime.datetime = field(default_factory=utc_now)
    is_archived: bool = False
    blueprint_ids: List[str] = field(default_factory=list)

    def touch(self) -> None:
        """最終更新日時を現在時刻に更新する。"""
        self.modified_at = utc_now()


@dataclass
class Blueprint:
    """プロジェクトに添付されたPDF図面を表現するデータモデル。

    Attributes:
        id (str): 図面の一意なID。
        project_id (str): 所有するプロジェクトのID。
        name (str): 表示名。
        file_name (str): 取り込み元のファイル名。
        pdf_data (bytes): PDFファイルの内容。
        page_count (int): 総ページ数（1以上）。
        page_sizes (List[Tuple[float, float]]): ページごとの (幅, 高さ)。
            要素が1つだけの場合は全ページ共通のサイズとして扱う。
        current_page (int): 最後に表示したページ番号（1始まり）。
        uploaded_at (datetime.datetime): 取り込み日時。
        log_entry_ids (List[str]): 所有する作業記録のID（追加順）。
    """
    id: str
    project_id: str
    name: str
    file_name: str
    pdf_data: bytes
    page_count: int
    page_sizes: List[Tuple[float, float]]
    current_page: int = 1
    uploaded_at: datetime.datetime = field(default_factory=utc_now)
    log_entry_ids: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.page_count < 1:
            raise ValueError(f"page_count は1以上である必要があります: {self.page_count}")
        if not self.page_sizes:
            raise ValueError("page_sizes が空です。")

    def has_page(self, page_number: int) -> bool:
        return 1 <= page_number <= self.page_count

    def page_size(self, page_number: int) -> Tuple[float, float]:
        """指定ページの (幅, 高さ) を返す。

        Args:
            page_number (int): ページ番号（1始まり）。

        Returns:
            Tuple[float, float]: ページの幅と高さ。

        Raises:
            InvalidPageNumber: ページ番号が範囲外の場合。
        """
        if not self.has_page(page_number):
            raise InvalidPageNumber(page_number, self.page_count)
        if len(self.page_sizes) == 1:
            return self.page_sizes[0]
        return self.page_sizes[page_number - 1]

    @property
    def file_size(self) -> int:
        return len(self.pdf_data)


@dataclass
class VideoAttachment:
    """作業記録に添付された動画。

    Attributes:
        data (bytes): 動画データ。
        file_name (str): 表示用ファイル名。
    """
    data: bytes
    file_name: str


@dataclass
class LogEntry:
    """図面上の特定ページ・特定位置に置かれた作業記録（ピン）を表現するデータモデル。

    Attributes:
        id (str): 作業記録の一意なID。
        blueprint_id (str): 所有する図面のID。常に設定されている。
        title (str): タイトル。空文字でも保存は可能。
        category (LogCategory): カテゴリ。
        page_number (int): ページ番号（1始まり、図面のページ数以下）。
        position (NormalizedPoint): ページ上の正規化座標（左上原点）。
        notes (str): 自由記述のメモ。
        date (datetime.datetime): 作成・編集日時。
        photos (List[bytes]): 添付写真。
        video (Optional[VideoAttachment]): 添付動画（最大1件）。
    """
    id: str
    blueprint_id: str
    title: str
    category: LogCategory
    page_number: int
    position: NormalizedPoint
    notes: str = ""
    date: datetime.datetime = field(default_factory=utc_now)
    photos: List[bytes] = field(default_factory=list)
    video: Optional[VideoAttachment] = None

    def __post_init__(self) -> None:
        self.date = ensure_aware(self.date)

    @property
    def x(self) -> float:
        return self.position.x

    @property
    def y(self) -> float:
        return self.position.y

    @property
    def is_valid(self) -> bool:
        """タイトルが空でない場合に有効とみなす。"""
        return bool(self.title.strip())

    @property
    def display_title(self) -> str:
        return self.title if self.title else self.category.value

    @property
    def photo_count(self) -> int:
        return len(self.photos)

    @property
    def has_video(self) -> bool:
        return self.video is not None

    @property
    def has_media(self) -> bool:
        return bool(self.photos) or self.video is not None

    @property
    def media_count(self) -> int:
        return len(self.photos) + (1 if self.video is not None else 0)

    def add_photo(self, image_data: bytes) -> None:
        self.photos.append(image_data)

    def remove_photo(self, index: int) -> None:
        """指定インデックスの写真を削除する。範囲外の場合は何もしない。"""
        if 0 <= index < len(self.photos):
            del self.photos[index]

    def set_video(self, data: bytes, file_name: str) -> None:
        self.video = VideoAttachment(data=data, file_name=file_name)

    def remove_video(self) -> None:
        self.video = None
