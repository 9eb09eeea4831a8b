# Overview: Pure discrepancy arithmetic for opname items; no state, no database.

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Iterable


def calculate_discrepancy(actual_stock: int, system_stock: int) -> int:
    """
    actual - system.

    Positive: more was physically found than recorded (gain).
    Negative: shrinkage / loss.
    """
    return actual_stock - system_stock


@dataclass(frozen=True)
class DiscrepancySummary:
    total_items: int = 0
    items_matching: int = 0
    items_with_discrepancy: int = 0
    gain_count: int = 0
    loss_count: int = 0
    total_gain: int = 0
    total_loss: int = 0  # sum of negative discrepancies (<= 0)

    @property
    def net(self) -> int:
        return self.total_gain + self.total_loss

    def to_dict(self) -> dict:
        data = asdict(self)
        data["net"] = self.net
        return data


def summarize_discrepancies(pairs: Iterable[tuple[int, int]]) -> DiscrepancySummary:
    """
    Session-level view shown to an operator before completing or cancelling.

    Args:
        pairs: (actual_stock, system_stock) per counted item
    """
    total = matching = gains = losses = total_gain = total_loss = 0
    for actual_stock, system_stock in pairs:
        total += 1
        diff = calculate_discrepancy(actual_stock, system_stock)
        if diff == 0:
            matching += 1
        elif diff > 0:
            gains += 1
            total_gain += diff
        else:
            losses += 1
            total_loss += diff

    return DiscrepancySummary(
        total_items=total,
        items_matching=matching,
        items_with_discrepancy=total - matching,
        gain_count=gains,
        loss_count=losses,
        total_gain=total_gain,
        total_loss=total_loss,
    )
