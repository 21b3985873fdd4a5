# models/geometry_models.py
import math
from dataclasses import dataclass


def _check_unit(name: str, value: float) -> None:
    """値が有限かつ [0, 1] の範囲にあることを検証する。"""
    if not math.isfinite(value) or value < 0.0 or value > 1.0:
        raise ValueError(f"{name} は 0〜1 の範囲で指定してください: {value}")


@dataclass(frozen=True)
class NormalizedPoint:
    """ページ上の位置を、ページ幅・高さに対する割合で表現するデータモデル。

    原点はページの左上。ズーム・パン・端末解像度に依存しない。

    Attributes:
        x (float): 水平方向の位置（0〜1）。
        y (float): 垂直方向の位置（0〜1、下方向が正）。
    """
    x: float
    y: float

    def __post_init__(self) -> None:
        _check_unit("x", self.x)
        _check_unit("y", self.y)


@dataclass(frozen=True)
class NormalizedRect:
    """正規化座標系での矩形領域を表現するデータモデル。

    空間検索（範囲選択）で使用される。各成分は 0〜1 の範囲に収まる。

    Attributes:
        x (float): 左端の位置。
        y (float): 上端の位置。
        width (float): 幅。
        height (float): 高さ。
    """
    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        _check_unit("x", self.x)
        _check_unit("y", self.y)
        _check_unit("width", self.width)
        _check_unit("height", self.height)

    @property
    def min_x(self) -> float:
        return self.x

    @property
    def max_x(self) -> float:
        return self.x + self.width

    @property
    def min_y(self) -> float:
        return self.y

    @property
    def max_y(self) -> float:
        return self.y + self.height

    def contains(self, x: float, y: float) -> bool:
        """点 (x, y) が矩形内（境界を含む）にあるかを判定する。"""
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y
