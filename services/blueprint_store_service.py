# services/blueprint_store_service.py
import base64
import copy
import datetime
import logging
import os
import threading
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from .base_service import BaseService
from .storage_service import StorageService
from models.blueprint_models import (Blueprint, LogCategory, LogEntry, Project, VideoAttachment, ensure_aware,
                                     utc_now)
from models.geometry_models import NormalizedPoint
from utils.annotation_index import AnnotationIndex
from utils.errors import InvalidPageNumber
from utils.pdf_utils import PDFUtils

logger = logging.getLogger(__name__)

StoreDocument = Dict[str, List[Dict[str, Any]]]


class AnnotationStore(ABC):
    """ギャラリー検索などの読み取り側から見た作業記録ストアのインターフェース。

    返されるレコードはストア内部の状態のコピーであり、取得時点のスナップショットとして扱える。
    取得に失敗した場合、実装は StoreUnavailable を送出する。
    """

    @abstractmethod
    def annotations_for_document(self, blueprint_id: str) -> List[LogEntry]:
        """指定図面のすべての作業記録を追加順で返す。"""

    @abstractmethod
    def annotations_for_project(self, project_id: str) -> List[LogEntry]:
        """指定プロジェクトの全図面の作業記録を、図面の追加順・作業記録の追加順で返す。"""

    @abstractmethod
    def get_blueprint(self, blueprint_id: str) -> Blueprint:
        """指定IDの図面を返す。存在しない場合は KeyError を送出する。"""

    @abstractmethod
    def get_project(self, project_id: str) -> Project:
        """指定IDのプロジェクトを返す。存在しない場合は KeyError を送出する。"""


def _encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _decode_bytes(text: str) -> bytes:
    return base64.b64decode(text.encode("ascii"))


def _encode_date(value: datetime.datetime) -> str:
    return value.isoformat()


def _decode_date(text: str) -> datetime.datetime:
    return datetime.datetime.fromisoformat(text)


class BlueprintStoreService(BaseService[StoreDocument], AnnotationStore):
    """プロジェクト・図面・作業記録のCRUD操作を管理するサービスクラス。

    レコード同士はIDで参照し合い、プロジェクト→図面→作業記録の順に所有関係を持つ。
    削除は所有関係に沿って連鎖する。StorageService が与えられた場合は、変更のたびに
    全体を1つのJSONファイルへ保存し、保存に失敗した変更はメモリ上にも残さない
    （StoreUnavailable を送出する）。読み取り操作はすべてコピーを返すため、
    別スレッドで実行中のクエリが後から行われた変更の影響を受けることはない。
    """

    STORE_FILE_IDENTIFIER = "blueprint_store.json"

    def __init__(self, storage_service: Optional[StorageService] = None,
                 store_file: Optional[str] = None) -> None:
        """BlueprintStoreServiceのコンストラクタ。

        Args:
            storage_service (Optional[StorageService]): データ永続化のためのストレージサービス。
            store_file (Optional[str]): 保存先のファイル名。省略時は STORE_FILE_IDENTIFIER。

        Raises:
            StoreUnavailable: 既存の保存ファイルが読み込めない場合。
        """
        super().__init__(storage_service=storage_service)
        self.store_file = store_file or self.STORE_FILE_IDENTIFIER
        self._lock = threading.RLock()
        self._projects: Dict[str, Project] = {}
        self._blueprints: Dict[str, Blueprint] = {}
        self._entries: Dict[str, LogEntry] = {}

        document = self.load_data(self.store_file)
        if document:
            self._restore(document)

    # --- AnnotationStore ---

    def annotations_for_document(self, blueprint_id: str) -> List[LogEntry]:
        with self._lock:
            blueprint = self._require_blueprint(blueprint_id)
            return [copy.deepcopy(self._entries[entry_id]) for entry_id in blueprint.log_entry_ids]

    def annotations_for_project(self, project_id: str) -> List[LogEntry]:
        with self._lock:
            project = self._require_project(project_id)
            entries: List[LogEntry] = []
            for blueprint_id in project.blueprint_ids:
                entries.extend(self.annotations_for_document(blueprint_id))
            return entries

    def get_blueprint(self, blueprint_id: str) -> Blueprint:
        with self._lock:
            return copy.deepcopy(self._require_blueprint(blueprint_id))

    # --- Projects ---

    def create_project(self, name: str, description: str = "", client_name: str = "",
                       location: str = "") -> Project:
        """新しいプロジェクトを作成する。

        Args:
            name (str): プロジェクト名。
            description (str): 説明文。
            client_name (str): 施主名。
            location (str): 現場所在地。

        Returns:
            Project: 作成されたプロジェクト（コピー）。
        """
        project = Project(id=str(uuid.uuid4()), name=name, description=description,
                          client_name=client_name, location=location)
        with self._transaction():
            self._projects[project.id] = project
            logger.info("プロジェクト %s (%s) を作成しました。", project.name, project.id)
            return copy.deepcopy(project)

    def get_project(self, project_id: str) -> Project:
        with self._lock:
            return copy.deepcopy(self._require_project(project_id))

    def list_projects(self, include_archived: bool = True) -> List[Project]:
        """プロジェクトを作成順に返す。"""
        with self._lock:
            return [
                copy.deepcopy(project) for project in self._projects.values()
                if include_archived or not project.is_archived
            ]

    def update_project(self, project_id: str, name: Optional[str] = None,
                       description: Optional[str] = None, client_name: Optional[str] = None,
                       location: Optional[str] = None) -> Project:
        """プロジェクト情報を更新する。None を渡した項目は変更しない。"""
        with self._transaction():
            project = self._require_project(project_id)
            if name is not None:
                project.name = name
            if description is not None:
                project.description = description
            if client_name is not None:
                project.client_name = client_name
            if location is not None:
                project.location = location
            project.touch()
            return copy.deepcopy(project)

    def set_archived(self, project_id: str, archived: bool = True) -> Project:
        with self._transaction():
            project = self._require_project(project_id)
            project.is_archived = archived
            project.touch()
            return copy.deepcopy(project)

    def delete_project(self, project_id: str) -> None:
        """プロジェクトを削除する。所有する図面と作業記録もすべて削除される。"""
        with self._transaction():
            project = self._require_project(project_id)
            for blueprint_id in list(project.blueprint_ids):
                self._remove_blueprint(blueprint_id)
            del self._projects[project_id]
            logger.info("プロジェクト %s を削除しました。", project_id)

    # --- Blueprints ---

    def add_blueprint(self, project_id: str, name: str, file_name: str, pdf_data: bytes,
                      page_count: int, page_sizes: List[Tuple[float, float]]) -> Blueprint:
        """プロジェクトに図面を追加する。

        Args:
            project_id (str): 追加先プロジェクトのID。
            name (str): 図面の表示名。
            file_name (str): 元のファイル名。
            pdf_data (bytes): PDFファイルの内容。
            page_count (int): 総ページ数（1以上）。
            page_sizes (List[Tuple[float, float]]): ページごとの (幅, 高さ)。

        Returns:
            Blueprint: 追加された図面（コピー）。

        Raises:
            KeyError: プロジェクトが存在しない場合。
            ValueError: ページ数が1未満、またはページサイズが空の場合。
        """
        with self._transaction():
            project = self._require_project(project_id)
            blueprint = Blueprint(
                id=str(uuid.uuid4()), project_id=project_id, name=name, file_name=file_name,
                pdf_data=pdf_data, page_count=page_count, page_sizes=list(page_sizes),
            )
            self._blueprints[blueprint.id] = blueprint
            project.blueprint_ids.append(blueprint.id)
            project.touch()
            logger.info("図面 %s (%dページ) をプロジェクト %s に追加しました。",
                        name, page_count, project_id)
            return copy.deepcopy(blueprint)

    def import_blueprint(self, project_id: str, pdf_path: str, name: Optional[str] = None) -> Blueprint:
        """PDFファイルを読み込み、ページ情報とともに図面として追加する。

        Args:
            project_id (str): 追加先プロジェクトのID。
            pdf_path (str): 取り込むPDFファイルのパス。
            name (Optional[str]): 表示名。省略時は拡張子を除いたファイル名。

        Returns:
            Blueprint: 追加された図面（コピー）。

        Raises:
            FileNotFoundError: PDFファイルが存在しない場合。
            ValueError: PDFとして読めない場合。
        """
        metrics = PDFUtils.read_blueprint_metrics(pdf_path)
        with open(pdf_path, "rb") as f:
            pdf_data = f.read()
        file_name = os.path.basename(pdf_path)
        display_name = name or os.path.splitext(file_name)[0]
        return self.add_blueprint(project_id, display_name, file_name, pdf_data,
                                  metrics.page_count, metrics.page_sizes)

    def blueprints_for_project(self, project_id: str) -> List[Blueprint]:
        """プロジェクトの図面を追加順に返す。"""
        with self._lock:
            project = self._require_project(project_id)
            return [copy.deepcopy(self._blueprints[bid]) for bid in project.blueprint_ids]

    def set_current_page(self, blueprint_id: str, page_number: int) -> Blueprint:
        """図面の最後に表示したページを更新する。

        Raises:
            InvalidPageNumber: ページ番号が範囲外の場合。
        """
        with self._transaction():
            blueprint = self._require_blueprint(blueprint_id)
            if not blueprint.has_page(page_number):
                raise InvalidPageNumber(page_number, blueprint.page_count)
            blueprint.current_page = page_number
            return copy.deepcopy(blueprint)

    def delete_blueprint(self, blueprint_id: str) -> None:
        """図面を削除する。所有する作業記録もすべて削除される。"""
        with self._transaction():
            blueprint = self._require_blueprint(blueprint_id)
            project = self._projects.get(blueprint.project_id)
            self._remove_blueprint(blueprint_id)
            if project is not None:
                project.touch()

    # --- Log entries ---

    def create_log_entry(self, blueprint_id: str, page_number: int, position: NormalizedPoint,
                         title: str, category: Union[LogCategory, str], notes: str = "",
                         date: Optional[datetime.datetime] = None) -> LogEntry:
        """図面の指定ページ・指定位置に作業記録を作成する。

        Args:
            blueprint_id (str): 対象図面のID。
            page_number (int): ページ番号（1始まり）。
            position (NormalizedPoint): ページ上の正規化座標。
            title (str): タイトル。
            category (Union[LogCategory, str]): カテゴリ（値の文字列も可）。
            notes (str): メモ。
            date (Optional[datetime.datetime]): 日時。省略時は現在時刻。タイムゾーンなしの場合はローカル時刻とみなす。

        Returns:
            LogEntry: 作成された作業記録（コピー）。

        Raises:
            KeyError: 図面が存在しない場合。
            InvalidPageNumber: ページ番号が図面のページ範囲外の場合。
            ValueError: カテゴリが不正な場合。
            StoreUnavailable: 保存に失敗した場合。作業記録は作成されない。
        """
        with self._transaction():
            blueprint = self._require_blueprint(blueprint_id)
            if not blueprint.has_page(page_number):
                raise InvalidPageNumber(page_number, blueprint.page_count)
            entry = LogEntry(
                id=str(uuid.uuid4()), blueprint_id=blueprint_id, title=title,
                category=LogCategory(category), page_number=page_number, position=position,
                notes=notes, date=ensure_aware(date) if date is not None else utc_now(),
            )
            self._entries[entry.id] = entry
            blueprint.log_entry_ids.append(entry.id)
            self._touch_owner(blueprint)
            logger.debug("作業記録 %s を %s の p.%d (%.3f, %.3f) に作成しました。",
                         entry.id, blueprint_id, page_number, position.x, position.y)
            return copy.deepcopy(entry)

    def get_log_entry(self, entry_id: str) -> LogEntry:
        with self._lock:
            return copy.deepcopy(self._require_entry(entry_id))

    def update_log_entry(self, entry_id: str, title: Optional[str] = None,
                         notes: Optional[str] = None,
                         category: Optional[Union[LogCategory, str]] = None,
                         date: Optional[datetime.datetime] = None) -> LogEntry:
        """作業記録の内容を更新する。None を渡した項目は変更しない。"""
        with self._transaction():
            entry = self._require_entry(entry_id)
            if title is not None:
                entry.title = title
            if notes is not None:
                entry.notes = notes
            if category is not None:
                entry.category = LogCategory(category)
            if date is not None:
                entry.date = ensure_aware(date)
            return self._entry_changed(entry)

    def add_photo(self, entry_id: str, image_data: bytes) -> LogEntry:
        with self._transaction():
            entry = self._require_entry(entry_id)
            entry.add_photo(image_data)
            return self._entry_changed(entry)

    def remove_photo(self, entry_id: str, index: int) -> LogEntry:
        with self._transaction():
            entry = self._require_entry(entry_id)
            entry.remove_photo(index)
            return self._entry_changed(entry)

    def set_video(self, entry_id: str, data: bytes, file_name: str) -> LogEntry:
        with self._transaction():
            entry = self._require_entry(entry_id)
            entry.set_video(data, file_name)
            return self._entry_changed(entry)

    def remove_video(self, entry_id: str) -> LogEntry:
        with self._transaction():
            entry = self._require_entry(entry_id)
            entry.remove_video()
            return self._entry_changed(entry)

    def delete_log_entry(self, entry_id: str) -> None:
        """作業記録を削除する。先に図面側の一覧から外してからレコードを削除する。"""
        with self._transaction():
            entry = self._require_entry(entry_id)
            blueprint = self._blueprints.get(entry.blueprint_id)
            if blueprint is not None:
                blueprint.log_entry_ids.remove(entry_id)
                self._touch_owner(blueprint)
            del self._entries[entry_id]

    def recent_log_entries(self, project_id: str, limit: int = 10) -> List[LogEntry]:
        """プロジェクト内の作業記録を新しい順に最大 limit 件返す。"""
        entries = self.annotations_for_project(project_id)
        return AnnotationIndex.sorted_by_date_descending(entries)[:limit]

    # --- BaseService ---

    def load_data(self, identifier: str) -> Optional[StoreDocument]:
        """BaseServiceから継承したメソッド。ストレージからストア全体を読み込む。

        Args:
            identifier (str): 読み込むファイル名（識別子）。

        Returns:
            Optional[StoreDocument]: 読み込まれたJSON文書。データがない場合はNone。
        """
        if self.storage_service:
            data = self.storage_service.load_json(identifier)
            if isinstance(data, dict):
                return data
        return None

    def save_data(self, data: StoreDocument) -> None:
        """BaseServiceから継承したメソッド。ストア全体をストレージに保存する。

        Args:
            data (StoreDocument): 保存するJSON文書。
        """
        if self.storage_service:
            self.storage_service.save_json(self.store_file, data)

    # --- 内部処理 ---

    def _require_project(self, project_id: str) -> Project:
        try:
            return self._projects[project_id]
        except KeyError:
            raise KeyError(f"プロジェクトが見つかりません: {project_id}") from None

    def _require_blueprint(self, blueprint_id: str) -> Blueprint:
        try:
            return self._blueprints[blueprint_id]
        except KeyError:
            raise KeyError(f"図面が見つかりません: {blueprint_id}") from None

    def _require_entry(self, entry_id: str) -> LogEntry:
        try:
            return self._entries[entry_id]
        except KeyError:
            raise KeyError(f"作業記録が見つかりません: {entry_id}") from None

    def _touch_owner(self, blueprint: Blueprint) -> None:
        project = self._projects.get(blueprint.project_id)
        if project is not None:
            project.touch()

    def _entry_changed(self, entry: LogEntry) -> LogEntry:
        blueprint = self._blueprints.get(entry.blueprint_id)
        if blueprint is not None:
            self._touch_owner(blueprint)
        return copy.deepcopy(entry)

    def _remove_blueprint(self, blueprint_id: str) -> None:
        blueprint = self._blueprints[blueprint_id]
        for entry_id in blueprint.log_entry_ids:
            self._entries.pop(entry_id, None)
        project = self._projects.get(blueprint.project_id)
        if project is not None and blueprint_id in project.blueprint_ids:
            project.blueprint_ids.remove(blueprint_id)
        del self._blueprints[blueprint_id]

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """ロックを取得して変更を行い、保存に成功した場合のみ変更を確定する。

        ブロック内の処理または保存が失敗した場合は、メモリ上の状態を変更前に戻して例外を再送出する。
        """
        with self._lock:
            snapshot = (copy.deepcopy(self._projects), copy.deepcopy(self._blueprints),
                        copy.deepcopy(self._entries))
            try:
                yield
                self._persist()
            except Exception:
                self._projects, self._blueprints, self._entries = snapshot
                raise

    def _persist(self) -> None:
        self.save_data(self._to_document())

    def _to_document(self) -> StoreDocument:
        return {
            "projects": [self._project_to_dict(p) for p in self._projects.values()],
            "blueprints": [self._blueprint_to_dict(b) for b in self._blueprints.values()],
            "log_entries": [self._entry_to_dict(e) for e in self._entries.values()],
        }

    def _restore(self, document: StoreDocument) -> None:
        for item in document.get("projects", []):
            project = Project(
                id=item["id"], name=item["name"], description=item.get("description", ""),
                client_name=item.get("client_name", ""), location=item.get("location", ""),
                created_at=_decode_date(item["created_at"]),
                modified_at=_decode_date(item["modified_at"]),
                is_archived=item.get("is_archived", False),
                blueprint_ids=list(item.get("blueprint_ids", [])),
            )
            self._projects[project.id] = project
        for item in document.get("blueprints", []):
            blueprint = Blueprint(
                id=item["id"], project_id=item["project_id"], name=item["name"],
                file_name=item["file_name"], pdf_data=_decode_bytes(item["pdf_data"]),
                page_count=item["page_count"],
                page_sizes=[tuple(size) for size in item["page_sizes"]],
                current_page=item.get("current_page", 1),
                uploaded_at=_decode_date(item["uploaded_at"]),
                log_entry_ids=list(item.get("log_entry_ids", [])),
            )
            self._blueprints[blueprint.id] = blueprint
        for item in document.get("log_entries", []):
            video = item.get("video")
            entry = LogEntry(
                id=item["id"], blueprint_id=item["blueprint_id"], title=item["title"],
                category=LogCategory(item["category"]), page_number=item["page_number"],
                position=NormalizedPoint(item["x"], item["y"]), notes=item.get("notes", ""),
                date=_decode_date(item["date"]),
                photos=[_decode_bytes(photo) for photo in item.get("photos", [])],
                video=VideoAttachment(_decode_bytes(video["data"]), video["file_name"]) if video else None,
            )
            self._entries[entry.id] = entry
        logger.info("ストアを読み込みました: プロジェクト%d件, 図面%d件, 作業記録%d件",
                    len(self._projects), len(self._blueprints), len(self._entries))

    @staticmethod
    def _project_to_dict(project: Project) -> Dict[str, Any]:
        return {
            "id": project.id,
            "name": project.name,
            "description": project.description,
            "client_name": project.client_name,
            "location": project.location,
            "created_at": _encode_date(project.created_at),
            "modified_at": _encode_date(project.modified_at),
            "is_archived": project.is_archived,
            "blueprint_ids": list(project.blueprint_ids),
        }

    @staticmethod
    def _blueprint_to_dict(blueprint: Blueprint) -> Dict[str, Any]:
        return {
            "id": blueprint.id,
            "project_id": blueprint.project_id,
            "name": blueprint.name,
            "file_name": blueprint.file_name,
            "pdf_data": _encode_bytes(blueprint.pdf_data),
            "page_count": blueprint.page_count,
            "page_sizes": [list(size) for size in blueprint.page_sizes],
            "current_page": blueprint.current_page,
            "uploaded_at": _encode_date(blueprint.uploaded_at),
            "log_entry_ids": list(blueprint.log_entry_ids),
        }

    @staticmethod
    def _entry_to_dict(entry: LogEntry) -> Dict[str, Any]:
        return {
            "id": entry.id,
            "blueprint_id": entry.blueprint_id,
            "title": entry.title,
            "category": entry.category.value,
            "page_number": entry.page_number,
            "x": entry.x,
            "y": entry.y,
            "notes": entry.notes,
            "date": _encode_date(entry.date),
            "photos": [_encode_bytes(photo) for photo in entry.photos],
            "video": {
                "data": _encode_bytes(entry.video.data),
                "file_name": entry.video.file_name,
            } if entry.video else None,
        }
