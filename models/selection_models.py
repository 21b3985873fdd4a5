# models/selection_models.py
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from models.geometry_models import NormalizedRect

# 誤タップを除外するための最小選択サイズ（正規化単位）
MIN_SELECTION_SIZE: float = 0.05


class SelectionState(str, Enum):
    """範囲選択ジェスチャーの状態。"""
    INACTIVE = "inactive"
    AWAITING_DRAG = "awaiting_drag"
    DRAGGING = "dragging"


def is_selection_large_enough(rect: NormalizedRect, min_size: float = MIN_SELECTION_SIZE) -> bool:
    """幅・高さがともに最小サイズを超えているかを判定する。"""
    return rect.width > min_size and rect.height > min_size


@dataclass(frozen=True)
class SpatialSelection:
    """画面上の範囲選択の状態（永続化されない一時的なセッション状態）。

    Attributes:
        rect (Optional[NormalizedRect]): 確定済みの選択矩形。
        is_active (bool): 選択モードが有効（ドラッグ待ち・ドラッグ中）かどうか。
    """
    rect: Optional[NormalizedRect] = None
    is_active: bool = False

    def is_valid(self, min_size: float = MIN_SELECTION_SIZE) -> bool:
        return self.rect is not None and is_selection_large_enough(self.rect, min_size)
