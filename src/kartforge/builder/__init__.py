"""Builder 模块：装机聚合与价格汇总"""

from .aggregator import BuildAggregator
from .pricing import line_total, total_price

__all__ = [
    "BuildAggregator",
    "line_total",
    "total_price",
]
