# utils/logger.py
"""アプリケーション全体で使用するロガーの初期化を提供します。"""

import logging
import os
import sys
from pathlib import Path
from typing import Dict, Optional, Union

APP_LOGGER_NAME = "construlog"
LOG_FORMAT = "[%(asctime)s] - %(name)s %(levelname)s %(message)s"

_loggers: Dict[str, logging.Logger] = {}


def setup_logger(name: str = APP_LOGGER_NAME, level: Union[int, str] = logging.INFO,
                 to_file: Optional[bool] = None, filename: Optional[str] = None) -> logging.Logger:
    """名前付きロガーを一度だけ設定して返す。

    各モジュールは logging.getLogger(__name__) でロガーを取得するため、
    ハンドラは起動時にこの関数でアプリケーションのロガーにだけ設定する。

    Args:
        name (str): ロガー名。
        level (Union[int, str]): ログレベル（"DEBUG" などの文字列も可）。
        to_file (Optional[bool]): ファイルにも出力するか。None の場合は環境変数 LOG_TO_FILE に従う。
        filename (Optional[str]): ログファイルのパス。None の場合は環境変数 LOG_FILE_PATH に従う。

    Returns:
        logging.Logger: 設定済みのロガー。
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # 開発中の再読み込みなどでハンドラが重複しないようにする
    if logger.handlers:
        _loggers[name] = logger
        return logger

    if to_file is None:
        to_file = os.getenv("LOG_TO_FILE", "false").lower() in {"1", "true", "yes", "on"}
    if to_file:
        target = Path(filename or os.getenv("LOG_FILE_PATH", "construlog.log"))
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(target, encoding="utf-8")
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
        except OSError:
            logger.exception("ログファイルを開けないため、ファイル出力を無効にします: %s", target)

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    _loggers[name] = logger
    return logger
