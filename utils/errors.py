# utils/errors.py
"""座標変換・注釈検索・ストア操作で送出される例外を定義します。"""
from typing import Optional


class ConstruLogError(Exception):
    """アプリケーション固有の例外の基底クラス。"""


class InvalidPageBounds(ConstruLogError, ValueError):
    """ページ（または描画面）の幅・高さが0以下、もしくは有限でない場合に送出される。

    レンダラーとの連携不具合を示すため、黙って許容してはならない。
    """

    def __init__(self, width: float, height: float) -> None:
        super().__init__(f"ページ境界が不正です: width={width}, height={height}")
        self.width = width
        self.height = height


class InvalidPageNumber(ConstruLogError, ValueError):
    """ページ番号が [1, page_count] の範囲外の場合に送出される。"""

    def __init__(self, page_number: int, page_count: Optional[int] = None) -> None:
        if page_count is None:
            message = f"ページ番号が不正です: {page_number}"
        else:
            message = f"ページ番号 {page_number} は範囲外です (1-{page_count})"
        super().__init__(message)
        self.page_number = page_number
        self.page_count = page_count


class StoreUnavailable(ConstruLogError):
    """バックエンドストアからの取得・保存に失敗した場合に送出される。"""


class QueryCancelled(ConstruLogError):
    """実行中のギャラリークエリがキャンセルされたことを示す。結果は生成されない。"""
