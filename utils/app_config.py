# utils/app_config.py
"""環境変数（および .env ファイル）からアプリケーション設定を読み込みます。"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class AppConfig:
    """アプリケーションの実行時設定をカプセル化するデータクラス。

    Attributes:
        data_dir (str): データ保存ディレクトリ。
        store_file (str): プロジェクト・図面・作業記録を保存するJSONファイル名。
        log_level (str): ログレベル。
        log_to_file (bool): ログをファイルにも出力するかどうか。
        pin_hit_radius (float): ピンのヒット判定半径（表示ピクセル）。
        recent_entries_limit (int): 「最近の作業記録」に表示する件数。
    """
    data_dir: str = "data"
    store_file: str = "blueprint_store.json"
    log_level: str = "INFO"
    log_to_file: bool = False
    pin_hit_radius: float = 22.0
    recent_entries_limit: int = 10


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"環境変数 {name} には数値を指定してください: {raw!r}") from exc


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"環境変数 {name} には整数を指定してください: {raw!r}") from exc


def load_config() -> AppConfig:
    """環境変数 CONSTRULOG_* から設定を読み込む。未設定の項目は既定値を使う。

    Returns:
        AppConfig: 設定オブジェクト。

    Raises:
        ValueError: 数値項目に数値として解釈できない値が設定されている場合。
    """
    load_dotenv()
    defaults = AppConfig()
    return AppConfig(
        data_dir=os.getenv("CONSTRULOG_DATA_DIR", defaults.data_dir),
        store_file=os.getenv("CONSTRULOG_STORE_FILE", defaults.store_file),
        log_level=os.getenv("CONSTRULOG_LOG_LEVEL", defaults.log_level).upper(),
        log_to_file=os.getenv("LOG_TO_FILE", "false").lower() in {"1", "true", "yes", "on"},
        pin_hit_radius=_env_float("CONSTRULOG_PIN_HIT_RADIUS", defaults.pin_hit_radius),
        recent_entries_limit=_env_int("CONSTRULOG_RECENT_ENTRIES", defaults.recent_entries_limit),
    )
