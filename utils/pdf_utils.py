# utils/pdf_utils.py
"""PDF図面のページ数・ページサイズの取得と、表示座標とページ座標の変換を提供します。"""

import math
import os
from dataclasses import dataclass
from typing import List, Optional, Tuple

import pymupdf as fitz  # PyMuPDF
from PyQt6.QtCore import QPointF, QSizeF

from utils.errors import InvalidPageNumber


@dataclass(frozen=True)
class ViewTransform:
    """ページ表示のズーム・スクロール状態。

    Attributes:
        scale (float): ズーム倍率（1.0 でPDFの1ポイント = 1ピクセル）。
        offset_x (float): 水平スクロール量（表示ピクセル）。
        offset_y (float): 垂直スクロール量（表示ピクセル）。
    """
    scale: float = 1.0
    offset_x: float = 0.0
    offset_y: float = 0.0

    def __post_init__(self) -> None:
        if not math.isfinite(self.scale) or self.scale <= 0:
            raise ValueError(f"ズーム倍率が不正です: {self.scale}")


@dataclass(frozen=True)
class BlueprintMetrics:
    """PDFから読み取った図面のページ情報。

    Attributes:
        page_count (int): 総ページ数。
        page_sizes (List[Tuple[float, float]]): ページごとの (幅, 高さ)（PDFポイント）。
    """
    page_count: int
    page_sizes: List[Tuple[float, float]]


def _open_document(path: Optional[str] = None, data: Optional[bytes] = None) -> fitz.Document:
    """パスまたはバイト列からPDFを開く。PDFとして読めない場合は ValueError を送出する。"""
    try:
        if data is not None:
            return fitz.open(stream=data, filetype="pdf")
        return fitz.open(path)
    except RuntimeError as e:
        # PyMuPDF の FileDataError などは RuntimeError の派生
        raise ValueError(f"PDFファイルを開けませんでした: {e}") from e


class PDFPageRenderer:
    """PyMuPDFで開いたPDF図面について、ページ数・ページ境界・座標変換を提供するクラス。

    ページ座標はPDFの慣例に合わせて左下原点で返す。表示座標（ウィジェット上の
    ピクセル、左上原点）との変換では ViewTransform のズームとスクロールを考慮する。
    """

    def __init__(self, document: fitz.Document) -> None:
        """PDFPageRendererのコンストラクタ。

        Args:
            document (fitz.Document): 対象のPDF文書。close() でこのクラスが閉じる。
        """
        self.document = document

    @classmethod
    def from_path(cls, pdf_path: str) -> "PDFPageRenderer":
        if not os.path.exists(pdf_path):
            raise FileNotFoundError(f"PDFファイルが見つかりません: {pdf_path}")
        return cls(_open_document(path=pdf_path))

    @classmethod
    def from_bytes(cls, pdf_data: bytes) -> "PDFPageRenderer":
        return cls(_open_document(data=pdf_data))

    def __enter__(self) -> "PDFPageRenderer":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        if not self.document.is_closed:
            self.document.close()

    @property
    def page_count(self) -> int:
        return self.document.page_count

    def page_bounds(self, page_number: int) -> QSizeF:
        """指定ページの幅と高さを返す。

        Args:
            page_number (int): ページ番号（1始まり）。

        Returns:
            QSizeF: ページの幅と高さ（PDFポイント）。

        Raises:
            InvalidPageNumber: ページ番号が範囲外の場合。
        """
        if not (1 <= page_number <= self.page_count):
            raise InvalidPageNumber(page_number, self.page_count)
        rect = self.document.load_page(page_number - 1).rect
        return QSizeF(rect.width, rect.height)

    def view_point_to_page_point(self, view_point: QPointF, page_number: int,
                                 transform: ViewTransform = ViewTransform()) -> QPointF:
        """表示座標の点を、ズーム・スクロールを解除したページ座標（左下原点）に変換する。"""
        height = self.page_bounds(page_number).height()
        x = (view_point.x() + transform.offset_x) / transform.scale
        y_from_top = (view_point.y() + transform.offset_y) / transform.scale
        return QPointF(x, height - y_from_top)

    def page_point_to_view_point(self, page_point: QPointF, page_number: int,
                                 transform: ViewTransform = ViewTransform()) -> QPointF:
        """ページ座標（左下原点）の点を表示座標に変換する。view_point_to_page_point の逆変換。"""
        height = self.page_bounds(page_number).height()
        x = page_point.x() * transform.scale - transform.offset_x
        y = (height - page_point.y()) * transform.scale - transform.offset_y
        return QPointF(x, y)


class PDFUtils:
    """PDF処理に関する共通機能を提供するユーティリティクラス。"""

    @staticmethod
    def read_blueprint_metrics(pdf_path: str) -> BlueprintMetrics:
        """PDFファイルのページ数と各ページのサイズを読み取る。

        Args:
            pdf_path (str): 読み取るPDFファイルのパス。

        Returns:
            BlueprintMetrics: ページ数とページサイズ。

        Raises:
            FileNotFoundError: 指定されたPDFファイルが存在しない場合。
            ValueError: PDFとして読めない、またはページが1枚もない場合。
        """
        with PDFPageRenderer.from_path(pdf_path) as renderer:
            if renderer.page_count < 1:
                raise ValueError(f"ページが含まれていないPDFです: {pdf_path}")
            sizes = []
            for page_number in range(1, renderer.page_count + 1):
                bounds = renderer.page_bounds(page_number)
                sizes.append((bounds.width(), bounds.height()))
            return BlueprintMetrics(page_count=renderer.page_count, page_sizes=sizes)
