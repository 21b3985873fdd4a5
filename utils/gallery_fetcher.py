# utils/gallery_fetcher.py
"""ギャラリークエリをバックグラウンドで実行するためのスレッド機能を提供します。"""

import logging
from typing import Optional

from PyQt6.QtCore import QThread, pyqtSignal, QObject

from models.gallery_models import GalleryContext, GalleryFilter
from services.gallery_service import GalleryQueryEngine
from utils.errors import InvalidPageNumber, QueryCancelled

logger = logging.getLogger(__name__)


class GalleryFetcherThread(QThread):
    """ギャラリークエリを1件実行するワーカースレッド。

    ストアからの取得で操作がフリーズしないよう、クエリをバックグラウンドで実行します。
    requestInterruption() でキャンセルでき、その場合はどのシグナルも送信しません。

    Signals:
        result_ready (pyqtSignal):
            クエリが完了した際に、リクエスト番号（int）と GalleryQueryResult を送信します。
            ストアが利用できなかった場合も、失敗状態の結果としてこのシグナルで通知されます。
        error_occurred (pyqtSignal):
            呼び出し側の誤り（範囲外のページなど）や予期せぬ例外が発生した際に、
            リクエスト番号（int）とエラーメッセージ（str）を送信します。
    """
    result_ready = pyqtSignal(int, object)
    error_occurred = pyqtSignal(int, str)

    def __init__(self, request_id: int, engine: GalleryQueryEngine, context: GalleryContext,
                 query_filter: GalleryFilter, parent: Optional[QObject] = None) -> None:
        """GalleryFetcherThreadのコンストラクタ。

        Args:
            request_id (int): 呼び出し側が古い結果を判別するためのリクエスト番号。
            engine (GalleryQueryEngine): クエリを実行するエンジン。
            context (GalleryContext): 検索対象。
            query_filter (GalleryFilter): 絞り込み条件。
            parent (Optional[QObject]): 親オブジェクト。デフォルトはNone。
        """
        super().__init__(parent)
        self.request_id = request_id
        self.engine = engine
        self.context = context
        self.query_filter = query_filter

    def run(self) -> None:
        """スレッドのメイン処理。クエリを実行し、結果をシグナルで通知する。"""
        try:
            result = self.engine.run(self.context, self.query_filter,
                                     is_cancelled=self.isInterruptionRequested)
        except QueryCancelled:
            logger.debug("リクエスト #%d はキャンセルされました。", self.request_id)
            return
        except (InvalidPageNumber, KeyError) as e:
            self.error_occurred.emit(self.request_id, f"ギャラリーを表示できません: {e}")
            return
        except Exception as e:
            logger.exception("リクエスト #%d の実行中に予期せぬエラーが発生しました。", self.request_id)
            self.error_occurred.emit(self.request_id, f"予期せぬエラーが発生しました: {e}")
            return

        if self.isInterruptionRequested():
            logger.debug("リクエスト #%d は完了後にキャンセルされたため破棄します。", self.request_id)
            return
        self.result_ready.emit(self.request_id, result)
