"""价格汇总：按当前配件价格实时计算，不做快照"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ..schemas import BuildItem


def line_total(item: BuildItem) -> Decimal:
    return item.part.price * item.quantity


def total_price(items: Iterable[BuildItem]) -> Decimal:
    """计算总价

    Args:
        items: 装机条目，每个条目内嵌当前配件

    Returns:
        sum(price * quantity)，精确十进制
    """
    total = Decimal("0")
    for item in items:
        total += line_total(item)
    return total
