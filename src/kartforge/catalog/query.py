"""
配件查询引擎 - Part Query Engine

对配件目录做多条件过滤、排序与分页。纯函数，没有副作用。
Multi-criteria filtering, ordering and pagination over the parts catalog.
Pure: it never touches the store.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from ..schemas import Part

DEFAULT_PAGE_SIZE = 20


class PartQuery(BaseModel):
    """
    查询条件 - Query criteria

    所有条件之间是 AND 关系；空字符串等同于未提供。
    All provided criteria are AND-combined; blank strings count as not provided.
    """

    q: Optional[str] = Field(default=None, description="name/brand/sku 子串，忽略大小写")
    category: Optional[str] = Field(default=None, description="类别，精确匹配")
    brand: Optional[str] = Field(default=None, description="品牌子串，忽略大小写")
    engine_model: Optional[str] = Field(default=None, description="任一档案的发动机型号子串")
    chain_size: Optional[str] = Field(default=None, description="任一档案的链条规格，精确匹配")
    price_min: Optional[Decimal] = None
    price_max: Optional[Decimal] = None
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE

    @field_validator("q", "category", "brand", "engine_model", "chain_size")
    @classmethod
    def _blank_is_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None or value == "":
            return None
        return value

    @field_validator("page")
    @classmethod
    def _page_at_least_one(cls, value: int) -> int:
        return max(1, value)

    @field_validator("page_size")
    @classmethod
    def _page_size_default(cls, value: int) -> int:
        return value if value >= 1 else DEFAULT_PAGE_SIZE

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


class PartPage(BaseModel):
    items: List[Part] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE


def _contains(haystack: Optional[str], needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def part_matches(part: Part, query: PartQuery) -> bool:
    if query.q is not None and not (
        _contains(part.name, query.q)
        or _contains(part.brand, query.q)
        or _contains(part.sku, query.q)
    ):
        return False

    if query.category is not None and part.category != query.category:
        return False

    if query.brand is not None and not _contains(part.brand, query.brand):
        return False

    if query.price_min is not None and part.price < query.price_min:
        return False
    if query.price_max is not None and part.price > query.price_max:
        return False

    # engine_model 与 chain_size 必须由同一个档案同时满足
    if query.engine_model is not None or query.chain_size is not None:
        return any(
            (query.engine_model is None or _contains(profile.engine_model, query.engine_model))
            and (query.chain_size is None or profile.chain_size == query.chain_size)
            for profile in part.compatibility_profiles
        )

    return True


def query_parts(parts: Iterable[Part], query: PartQuery) -> PartPage:
    """
    执行查询 - Run a query

    结果按创建时间倒序，时间相同时按 id 倒序，保证分页稳定。
    total 是分页前的匹配总数；页码越界时 items 为空但 total 仍然正确。
    Matches are ordered newest first, ties broken by id descending so pages are
    deterministic. total counts every match before slicing; an out-of-range
    page yields no items but the correct total.
    """
    matched = [p for p in parts if part_matches(p, query)]
    matched.sort(key=lambda p: (p.created_at, p.id), reverse=True)
    return PartPage(
        items=matched[query.offset:query.offset + query.page_size],
        total=len(matched),
        page=query.page,
        page_size=query.page_size,
    )
