"""
アプリケーションのエントリーポイント。

プロジェクト・図面・作業記録のストアをコマンドラインから操作します。
gallery コマンドは QCoreApplication のイベントループ上で GalleryHandler を使い、
ギャラリー検索をバックグラウンドスレッドで実行して結果を表示します。
また、プロジェクトのルートディレクトリをPythonのパスに追加し、
他のモジュール（models, services, utils, ui）を正しくインポートできるように設定します。
"""
import argparse
import logging
import os
import sys
from typing import List, Optional

# このファイル(main.py)があるディレクトリをモジュール検索パスに追加します。
current_dir: str = os.path.dirname(os.path.abspath(__file__))
if current_dir not in sys.path:
    sys.path.append(current_dir)

from PyQt6.QtCore import QCoreApplication, QPointF, QTimer

from models.blueprint_models import LogCategory
from models.gallery_models import (GalleryContext, GalleryFilter, GalleryQueryResult, SingleDocument,
                                   SpatialRegion, WholeProject)
from models.geometry_models import NormalizedPoint, NormalizedRect
from models.overview_models import CategoryFilterPreset
from services.blueprint_store_service import BlueprintStoreService
from services.category_overview_service import CategoryOverviewService
from services.gallery_service import GalleryQueryEngine
from services.storage_service import StorageService
from services.timeline_service import TimelineService
from ui.handlers.gallery_handler import GalleryHandler
from ui.handlers.pin_handler import PinHandler
from utils.app_config import AppConfig, load_config
from utils.date_utils import DateRangePreset
from utils.errors import ConstruLogError
from utils.logger import setup_logger
from utils.pdf_utils import ViewTransform

logger = logging.getLogger("construlog")


def build_parser() -> argparse.ArgumentParser:
    """コマンドライン引数のパーサーを構築する。"""
    parser = argparse.ArgumentParser(prog="construlog", description="図面ベースの施工記録ツール")
    parser.add_argument("--data-dir", help="データ保存ディレクトリ（既定は CONSTRULOG_DATA_DIR）")
    subparsers = parser.add_subparsers(dest="command", required=True)

    projects = subparsers.add_parser("projects", help="プロジェクトの一覧を表示する")
    projects.add_argument("--active-only", action="store_true", help="アーカイブ済みを除外する")

    create = subparsers.add_parser("create-project", help="プロジェクトを作成する")
    create.add_argument("name")
    create.add_argument("--description", default="")
    create.add_argument("--client", default="")
    create.add_argument("--location", default="")

    importer = subparsers.add_parser("import-blueprint", help="PDF図面をプロジェクトに追加する")
    importer.add_argument("project_id")
    importer.add_argument("pdf_path")
    importer.add_argument("--name")

    gallery = subparsers.add_parser("gallery", help="写真・動画の一覧を表示する")
    target = gallery.add_mutually_exclusive_group(required=True)
    target.add_argument("--project", help="プロジェクト全体を対象にする")
    target.add_argument("--blueprint", help="単一の図面を対象にする")
    gallery.add_argument("--page", type=int, help="領域検索の対象ページ（--rect と併用）")
    gallery.add_argument("--rect", type=float, nargs=4, metavar=("X", "Y", "W", "H"),
                         help="領域検索の矩形（正規化座標）")
    _add_category_argument(gallery)
    media = gallery.add_mutually_exclusive_group()
    media.add_argument("--photos-only", action="store_true")
    media.add_argument("--videos-only", action="store_true")

    timeline = subparsers.add_parser("timeline", help="作業記録を日付ごとに表示する")
    timeline.add_argument("project_id")
    timeline.add_argument("--range", dest="date_range", default=DateRangePreset.ALL.value,
                          choices=[preset.value for preset in DateRangePreset])
    timeline.add_argument("--search", default="")
    _add_category_argument(timeline)

    add_log = subparsers.add_parser("add-log", help="図面上に作業記録を追加する")
    add_log.add_argument("blueprint_id")
    add_log.add_argument("page", type=int)
    add_log.add_argument("x", type=float, help="正規化X座標（0〜1、左端が0）")
    add_log.add_argument("y", type=float, help="正規化Y座標（0〜1、上端が0）")
    add_log.add_argument("title")
    add_log.add_argument("--category", default=LogCategory.GENERAL.value,
                         choices=[category.value for category in LogCategory])
    add_log.add_argument("--notes", default="")
    add_log.add_argument("--photo", action="append", default=[], metavar="IMAGE_PATH",
                         help="添付する写真ファイル（複数指定可）")

    recent = subparsers.add_parser("recent", help="最近の作業記録を表示する")
    recent.add_argument("project_id")
    recent.add_argument("--limit", type=int, help="表示件数（既定は CONSTRULOG_RECENT_ENTRIES）")

    pins = subparsers.add_parser("pins", help="図面ページ上のピンの表示位置を表示する")
    pins.add_argument("blueprint_id")
    pins.add_argument("page", type=int)
    pins.add_argument("--zoom", type=float, default=1.0, help="ズーム倍率")
    pins.add_argument("--near", type=float, nargs=2, metavar=("X", "Y"),
                      help="表示座標の近くにあるピンだけを表示する（判定半径は CONSTRULOG_PIN_HIT_RADIUS）")

    overview = subparsers.add_parser("overview", help="図面の作業記録をカテゴリ別に集計する")
    overview.add_argument("blueprint_id")
    overview.add_argument("--preset", default=CategoryFilterPreset.ALL.value,
                          choices=[preset.value for preset in CategoryFilterPreset])
    return parser


def _add_category_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--category", action="append", dest="categories",
                        choices=[category.value for category in LogCategory],
                        help="表示するカテゴリ（複数指定可）")


def _selected_categories(values: Optional[List[str]]) -> Optional[frozenset]:
    if not values:
        return None
    return frozenset(LogCategory(value) for value in values)


def cmd_projects(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    for project in store.list_projects(include_archived=not args.active_only):
        archived = " [archived]" if project.is_archived else ""
        print(f"{project.id}  {project.name}{archived}  図面{len(project.blueprint_ids)}件")
    return 0


def cmd_create_project(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    project = store.create_project(args.name, description=args.description,
                                   client_name=args.client, location=args.location)
    print(project.id)
    return 0


def cmd_import_blueprint(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    blueprint = store.import_blueprint(args.project_id, args.pdf_path, name=args.name)
    print(f"{blueprint.id}  {blueprint.name}  {blueprint.page_count}ページ")
    return 0


def _gallery_context(args: argparse.Namespace) -> GalleryContext:
    if args.project:
        return WholeProject(args.project)
    if args.rect:
        return SpatialRegion(args.blueprint, NormalizedRect(*args.rect), args.page or 1)
    return SingleDocument(args.blueprint)


def cmd_gallery(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    """ギャラリー検索をイベントループ上で非同期に実行し、結果を表示する。"""
    categories = _selected_categories(args.categories)
    query_filter = GalleryFilter(
        categories=categories if categories is not None else LogCategory.all(),
        include_photos=not args.videos_only,
        include_videos=not args.photos_only,
    )
    context = _gallery_context(args)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    engine = GalleryQueryEngine(store)
    handler = GalleryHandler(engine)
    exit_code = {"value": 0}

    def on_results(result: GalleryQueryResult) -> None:
        print(engine.context_title(context))
        for item in result.items:
            print(f"{item.date.astimezone():%Y-%m-%d %H:%M}  {item.category.value:<11}  {item.file_name}  {item.title}")
        stats = result.statistics
        print(f"合計 {stats.total_items}件（写真 {stats.photo_count}件 / 動画 {stats.video_count}件）")
        app.quit()

    def on_failed(message: str) -> None:
        print(f"ギャラリーを読み込めませんでした: {message}", file=sys.stderr)
        exit_code["value"] = 1
        app.quit()

    handler.results_changed.connect(on_results)
    handler.load_failed.connect(on_failed)
    QTimer.singleShot(0, lambda: handler.load(context, query_filter))
    app.exec()
    handler.shutdown()
    return exit_code["value"]


def cmd_timeline(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    timeline = TimelineService(store)
    sections = timeline.grouped_by_day(
        args.project_id,
        date_range=DateRangePreset(args.date_range),
        categories=_selected_categories(args.categories),
        search_text=args.search,
    )
    for day, entries in sections:
        print(f"{day:%Y-%m-%d}")
        for entry in entries:
            print(f"  {entry.date.astimezone():%H:%M}  {entry.category.value:<11}  {entry.display_title}"
                  f"  写真{entry.photo_count}件{'・動画あり' if entry.has_video else ''}")
    return 0


def cmd_add_log(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    entry = store.create_log_entry(args.blueprint_id, args.page, NormalizedPoint(args.x, args.y),
                                   args.title, args.category, notes=args.notes)
    for photo_path in args.photo:
        with open(photo_path, "rb") as f:
            entry = store.add_photo(entry.id, f.read())
    print(entry.id)
    return 0


def cmd_recent(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    limit = config.recent_entries_limit if args.limit is None else args.limit
    for entry in store.recent_log_entries(args.project_id, limit=limit):
        print(f"{entry.date.astimezone():%Y-%m-%d %H:%M}  {entry.category.value:<11}  {entry.display_title}")
    return 0


def cmd_pins(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    pin_handler = PinHandler(store, hit_radius=config.pin_hit_radius)
    transform = ViewTransform(scale=args.zoom)
    if args.near:
        hits = pin_handler.pins_near(args.blueprint_id, args.page, QPointF(*args.near), transform)
        for entry in hits:
            print(f"{entry.id}  {entry.display_title}")
        return 0
    for entry, position in pin_handler.pin_positions(args.blueprint_id, args.page, transform):
        print(f"{entry.id}  ({position.x():.1f}, {position.y():.1f})  {entry.display_title}")
    return 0


def cmd_overview(store: BlueprintStoreService, args: argparse.Namespace, config: AppConfig) -> int:
    service = CategoryOverviewService(store)
    overview = service.overview(args.blueprint_id)
    shown = service.preset_categories(args.blueprint_id, args.preset)
    for stat in overview.stats:
        if stat.category not in shown:
            continue
        media = "  メディアあり" if stat.has_media else ""
        print(f"{stat.category.value:<11}  {stat.count}件  最終 {stat.latest_date.astimezone():%Y-%m-%d}{media}")
    print(f"合計 {overview.total_entries}件 / {len(overview.stats)}カテゴリ / メディア付き {overview.entries_with_media}件")
    return 0


COMMANDS = {
    "projects": cmd_projects,
    "create-project": cmd_create_project,
    "import-blueprint": cmd_import_blueprint,
    "gallery": cmd_gallery,
    "timeline": cmd_timeline,
    "add-log": cmd_add_log,
    "recent": cmd_recent,
    "pins": cmd_pins,
    "overview": cmd_overview,
}


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config: AppConfig = load_config()
    # 各モジュールのロガーはルートロガーに伝播する
    setup_logger("", level=config.log_level, to_file=config.log_to_file)

    try:
        storage = StorageService(args.data_dir or config.data_dir)
        store = BlueprintStoreService(storage, store_file=config.store_file)
        return COMMANDS[args.command](store, args, config)
    except (ConstruLogError, KeyError, ValueError, FileNotFoundError) as e:
        logger.error("%s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
