import math

import pytest
from PyQt6.QtCore import QPointF, QRectF, QSizeF

from models.geometry_models import NormalizedPoint
from utils.coordinate_mapper import CoordinateMapper
from utils.errors import InvalidPageBounds

LETTER = QSizeF(612, 792)


@pytest.mark.parametrize("bounds", [QSizeF(612, 792), QSizeF(1024.5, 300), QSizeF(1, 1)])
@pytest.mark.parametrize("fx, fy", [(0, 0), (1, 1), (0.25, 0.75), (0.999, 0.001), (0.5, 0.5)])
def test_round_trip_returns_original_point(bounds, fx, fy):
    """正規化してから戻すと元の点に一致すること。"""
    point = QPointF(bounds.width() * fx, bounds.height() * fy)
    restored = CoordinateMapper.to_view_point(CoordinateMapper.to_normalized(point, bounds), bounds)
    assert restored.x() == pytest.approx(point.x(), rel=1e-6, abs=1e-9)
    assert restored.y() == pytest.approx(point.y(), rel=1e-6, abs=1e-9)


def test_center_of_letter_page():
    normalized = CoordinateMapper.to_normalized(QPointF(306, 396), LETTER)
    assert normalized == NormalizedPoint(0.5, 0.5)


def test_y_axis_is_flipped_for_page_points():
    """ページ座標は左下原点なので、下端の点は正規化座標の y=1 になる。"""
    assert CoordinateMapper.to_normalized(QPointF(0, 0), LETTER) == NormalizedPoint(0.0, 1.0)
    assert CoordinateMapper.to_normalized(QPointF(612, 792), LETTER) == NormalizedPoint(1.0, 0.0)


@pytest.mark.parametrize("point", [
    QPointF(-10, -10), QPointF(10_000, 10_000), QPointF(-1, 400), QPointF(300, 5000),
])
def test_points_outside_page_are_clamped(point):
    normalized = CoordinateMapper.to_normalized(point, LETTER)
    assert 0.0 <= normalized.x <= 1.0
    assert 0.0 <= normalized.y <= 1.0


@pytest.mark.parametrize("bounds", [
    QSizeF(0, 792), QSizeF(612, 0), QSizeF(-1, 792), QSizeF(math.inf, 792), QSizeF(612, math.nan),
])
def test_invalid_bounds_raise(bounds):
    with pytest.raises(InvalidPageBounds):
        CoordinateMapper.to_normalized(QPointF(1, 1), bounds)
    with pytest.raises(InvalidPageBounds):
        CoordinateMapper.to_view_point(NormalizedPoint(0.5, 0.5), bounds)
    with pytest.raises(InvalidPageBounds):
        CoordinateMapper.to_normalized_rect(QRectF(0, 0, 10, 10), bounds)


def test_invalid_bounds_is_a_value_error():
    with pytest.raises(ValueError):
        CoordinateMapper.to_normalized(QPointF(1, 1), QSizeF(0, 0))


def test_rect_normalization_does_not_flip_y():
    rect = CoordinateMapper.to_normalized_rect(QRectF(100, 200, 300, 400), QSizeF(1000, 1000))
    assert rect.x == pytest.approx(0.1)
    assert rect.y == pytest.approx(0.2)
    assert rect.width == pytest.approx(0.3)
    assert rect.height == pytest.approx(0.4)


def test_rect_drawn_in_reverse_direction_is_normalized():
    rect = CoordinateMapper.to_normalized_rect(QRectF(400, 600, -300, -400), QSizeF(1000, 1000))
    assert rect.x == pytest.approx(0.1)
    assert rect.y == pytest.approx(0.2)
    assert rect.width == pytest.approx(0.3)
    assert rect.height == pytest.approx(0.4)


def test_rect_extending_past_surface_is_clamped():
    rect = CoordinateMapper.to_normalized_rect(QRectF(800, 900, 500, 500), QSizeF(1000, 1000))
    assert rect.x == pytest.approx(0.8)
    assert rect.y == pytest.approx(0.9)
    assert rect.max_x <= 1.0 + 1e-9
    assert rect.max_y <= 1.0 + 1e-9


def test_rect_starting_left_of_surface_loses_outside_part():
    rect = CoordinateMapper.to_normalized_rect(QRectF(-200, 0, 500, 100), QSizeF(1000, 1000))
    assert rect.x == 0.0
    assert rect.width == pytest.approx(0.3)


def test_rect_entirely_outside_surface_is_empty():
    rect = CoordinateMapper.to_normalized_rect(QRectF(2000, 2000, 100, 100), QSizeF(1000, 1000))
    assert rect.width == 0.0
    assert rect.height == 0.0
