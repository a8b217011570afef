"""
装机聚合器 - Build Aggregator

维护装机与条目的一致性：条目引用的装机和配件在写入前必须存在，数量至少为 1，
槽位取自与配件类别相同的枚举（不要求与配件自身类别一致）。
Keeps builds and their items consistent: referenced builds and parts must
exist before a write, quantity is at least 1, and the slot comes from the same
enumeration as part categories (it need not equal the part's own category).
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Dict, List

from ..db import SQLiteBuildsRepository
from ..errors import InvalidInputError, NotFoundError
from ..schemas import SLOT_CATEGORIES, Build, BuildItem, BuildView
from .pricing import total_price

log = logging.getLogger("kartforge.builder")


def _validate_slot_and_quantity(slot_category: str | None, quantity: int | None) -> None:
    details: List[Dict[str, str]] = []
    if slot_category is not None and slot_category not in SLOT_CATEGORIES:
        details.append(
            {
                "field": "slotCategory",
                "message": f"must be one of: {', '.join(SLOT_CATEGORIES)}",
            }
        )
    if quantity is not None and (type(quantity) is not int or quantity < 1):
        details.append({"field": "quantity", "message": "must be an integer >= 1"})
    if details:
        raise InvalidInputError(details)


class BuildAggregator:
    def __init__(self, builds: SQLiteBuildsRepository):
        self.builds = builds

    # === 装机 ===

    def create_build(self, label: str) -> Build:
        if not label or not label.strip():
            raise InvalidInputError.for_field("label", "must not be empty")
        build = self.builds.create(label.strip())
        log.info("created build id=%s label=%r", build.id, build.label)
        return build

    def list_builds(self) -> List[Build]:
        return self.builds.all_builds()

    def _require_build(self, build_id: int) -> Build:
        build = self.builds.get(build_id)
        if build is None:
            raise NotFoundError("Build", build_id)
        return build

    def get_build(self, build_id: int) -> BuildView:
        build = self._require_build(build_id)
        items = self.builds.items_for_build(build_id)
        return BuildView(
            build_id=build.id,
            label=build.label,
            created_at=build.created_at,
            items=items,
            total_price=total_price(items),
        )

    def delete_build(self, build_id: int) -> None:
        if not self.builds.delete(build_id):
            raise NotFoundError("Build", build_id)
        log.info("deleted build id=%s (items cascaded)", build_id)

    def total_price(self, build_id: int) -> Decimal:
        self._require_build(build_id)
        return total_price(self.builds.items_for_build(build_id))

    # === 条目 ===

    def add_item(
        self,
        build_id: int,
        part_id: int,
        slot_category: str,
        quantity: int = 1,
    ) -> BuildItem:
        """添加配件到装机

        每次调用都新建一行，即使同一装机里已有相同配件和槽位的条目也不合并。

        Raises:
            InvalidInputError: 槽位或数量不合法
            NotFoundError: 装机或配件不存在
        """
        _validate_slot_and_quantity(slot_category, quantity)
        item = self.builds.add_item(build_id, part_id, slot_category, quantity)
        log.debug("build %s: added part %s to slot %s x%d", build_id, part_id, slot_category, quantity)
        return item

    def create_item(self, build_id: int, part_id: int, slot_category: str, quantity: int = 1) -> BuildItem:
        return self.add_item(build_id, part_id, slot_category, quantity)

    def get_item(self, item_id: int) -> BuildItem:
        item = self.builds.get_item(item_id)
        if item is None:
            raise NotFoundError("Build item", item_id)
        return item

    def list_items(
        self,
        build_id: int | None = None,
        part_id: int | None = None,
        slot_category: str | None = None,
    ) -> List[BuildItem]:
        return self.builds.list_items(build_id=build_id, part_id=part_id, slot_category=slot_category)

    def update_item(self, item_id: int, changes: dict) -> BuildItem:
        """部分更新条目

        changes 可包含 build_id / part_id / slot_category / quantity 的任意子集，
        值为 None 的键视为未提供。改动 build_id 或 part_id 时重新校验其存在性。
        """
        changes = {k: v for k, v in changes.items() if v is not None}
        _validate_slot_and_quantity(changes.get("slot_category"), changes.get("quantity"))
        item = self.builds.update_item(item_id, changes)
        if item is None:
            raise NotFoundError("Build item", item_id)
        return item

    def remove_item(self, item_id: int) -> None:
        if not self.builds.delete_item(item_id):
            raise NotFoundError("Build item", item_id)
