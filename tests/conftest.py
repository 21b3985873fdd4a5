import datetime
import os
import sys

import pymupdf as fitz
import pytest

# ヘッドレス環境でQtを実行できるようにする
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from models.blueprint_models import LogCategory, LogEntry  # noqa: E402
from models.geometry_models import NormalizedPoint  # noqa: E402
from services.blueprint_store_service import BlueprintStoreService  # noqa: E402

BASE_DATE = datetime.datetime(2024, 5, 1, 9, 0, tzinfo=datetime.timezone.utc)


def make_pdf_bytes(page_count: int = 1, width: float = 612, height: float = 792) -> bytes:
    """指定サイズの空白ページからなるPDFをメモリ上で生成する。"""
    document = fitz.open()
    for _ in range(page_count):
        document.new_page(width=width, height=height)
    data = document.tobytes()
    document.close()
    return data


def make_entry(entry_id: str = "e1", x: float = 0.5, y: float = 0.5, page: int = 1,
               category: LogCategory = LogCategory.GENERAL, minutes: int = 0,
               photos: int = 0, video: bool = False, title: str = "", notes: str = "",
               blueprint_id: str = "bp") -> LogEntry:
    """テスト用の作業記録を生成する。日時は BASE_DATE から minutes 分後。"""
    entry = LogEntry(
        id=entry_id, blueprint_id=blueprint_id, title=title or entry_id, category=category,
        page_number=page, position=NormalizedPoint(x, y), notes=notes,
        date=BASE_DATE + datetime.timedelta(minutes=minutes),
    )
    for index in range(photos):
        entry.add_photo(f"{entry_id}-photo-{index}".encode())
    if video:
        entry.set_video(f"{entry_id}-video".encode(), f"{entry_id}.mov")
    return entry


@pytest.fixture
def pdf_bytes() -> bytes:
    return make_pdf_bytes(page_count=3)


@pytest.fixture
def store() -> BlueprintStoreService:
    return BlueprintStoreService()


@pytest.fixture
def project(store):
    return store.create_project("駅前ビル新築工事", client_name="山田建設", location="東京都")


@pytest.fixture
def blueprint(store, project, pdf_bytes):
    return store.add_blueprint(project.id, "1階平面図", "floor1.pdf", pdf_bytes,
                               page_count=3, page_sizes=[(612.0, 792.0)] * 3)
