# utils/coordinate_mapper.py
"""表示中ページのピクセル座標と、解像度非依存の正規化座標との相互変換を提供します。"""

import math

from PyQt6.QtCore import QPointF, QRectF, QSizeF

from models.geometry_models import NormalizedPoint, NormalizedRect
from utils.errors import InvalidPageBounds


def _clamp_unit(value: float) -> float:
    """値を [0, 1] に収める。NaN は 0 として扱う。"""
    if math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, value))


def _validate_bounds(bounds: QSizeF) -> None:
    width, height = bounds.width(), bounds.height()
    if not (math.isfinite(width) and math.isfinite(height)) or width <= 0 or height <= 0:
        raise InvalidPageBounds(width, height)


class CoordinateMapper:
    """正規化座標（0〜1、左上原点）とページ／描画面のピクセル座標を変換するユーティリティクラス。

    ページ座標はレンダラーの規約に従い左下原点のため、点の変換ではY軸を反転する。
    一方、範囲選択の矩形は画面上のオーバーレイ座標系（左上原点）で描かれるため反転しない。
    範囲外の値は例外ではなくクランプで処理し、境界が不正な場合のみ InvalidPageBounds を送出する。
    """

    @staticmethod
    def to_normalized(view_point: QPointF, page_bounds: QSizeF) -> NormalizedPoint:
        """ページ座標上の点を正規化座標に変換する。

        Args:
            view_point (QPointF): レンダラーがズーム・パンを解除した後のページ座標（左下原点）。
            page_bounds (QSizeF): ページの幅と高さ（view_point と同じ単位）。

        Returns:
            NormalizedPoint: 各成分が [0, 1] にクランプされた正規化座標。

        Raises:
            InvalidPageBounds: ページの幅・高さが0以下、または有限でない場合。
        """
        _validate_bounds(page_bounds)
        width, height = page_bounds.width(), page_bounds.height()
        x = view_point.x() / width
        y = (height - view_point.y()) / height
        return NormalizedPoint(_clamp_unit(x), _clamp_unit(y))

    @staticmethod
    def to_view_point(point: NormalizedPoint, page_bounds: QSizeF) -> QPointF:
        """正規化座標をページ座標（左下原点）に戻す。to_normalized の逆変換。

        Args:
            point (NormalizedPoint): 正規化座標。
            page_bounds (QSizeF): ページの幅と高さ。

        Returns:
            QPointF: ページ座標上の点。

        Raises:
            InvalidPageBounds: ページの幅・高さが0以下、または有限でない場合。
        """
        _validate_bounds(page_bounds)
        width, height = page_bounds.width(), page_bounds.height()
        return QPointF(point.x * width, height * (1.0 - point.y))

    @staticmethod
    def to_normalized_rect(view_rect: QRectF, surface_bounds: QSizeF) -> NormalizedRect:
        """描画面上のドラッグ矩形を正規化矩形に変換する。

        描画面（画面上のオーバーレイ）の幅・高さで各成分を割るだけで、Y軸は反転しない。
        原点が描画面の外にある場合はその分だけ幅・高さを縮め、遠い側の角が1.0を
        超えないように幅・高さをクランプする。

        Args:
            view_rect (QRectF): ドラッグで得られた矩形（向きは問わない）。
            surface_bounds (QSizeF): 描画面の幅と高さ。

        Returns:
            NormalizedRect: 正規化された矩形。

        Raises:
            InvalidPageBounds: 描画面の幅・高さが0以下、または有限でない場合。
        """
        _validate_bounds(surface_bounds)
        rect = view_rect.normalized()
        surface_width, surface_height = surface_bounds.width(), surface_bounds.height()

        x = rect.x() / surface_width
        y = rect.y() / surface_height
        width = rect.width() / surface_width
        height = rect.height() / surface_height

        # 描画面の外側にはみ出した部分を切り落とす
        if x < 0:
            width += x
        if y < 0:
            height += y
        x = _clamp_unit(x)
        y = _clamp_unit(y)
        width = max(0.0, min(_clamp_unit(width), 1.0 - x))
        height = max(0.0, min(_clamp_unit(height), 1.0 - y))
        return NormalizedRect(x, y, width, height)
