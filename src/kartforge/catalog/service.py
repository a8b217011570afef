from __future__ import annotations

import logging
from typing import List

from ..db import SQLitePartsRepository
from ..errors import NotFoundError
from ..schemas import (
    CompatibilityProfile,
    CompatibilityProfileCreate,
    CompatibilityProfileUpdate,
    Part,
    PartCreate,
    PartUpdate,
)
from .query import PartPage, PartQuery, query_parts

log = logging.getLogger("kartforge.catalog")


class CatalogService:
    """配件目录服务：查询、维护配件与兼容性档案"""

    def __init__(self, repo: SQLitePartsRepository):
        self.repo = repo

    def list_parts(self, query: PartQuery) -> PartPage:
        return query_parts(self.repo.all_parts(), query)

    def get_part(self, part_id: int) -> Part:
        part = self.repo.get(part_id)
        if part is None:
            raise NotFoundError("Part", part_id)
        return part

    def create_part(self, payload: PartCreate) -> Part:
        fields = payload.model_dump(exclude={"compatibility_profiles"})
        profiles = [p.model_dump() for p in payload.compatibility_profiles]
        part = self.repo.create(fields, profiles)
        log.info("created part id=%s sku=%s with %d profile(s)", part.id, part.sku, len(profiles))
        return part

    def update_part(self, part_id: int, payload: PartUpdate) -> Part:
        # description 可以清空，其余字段为 null 视为未提供
        changes = {
            k: v
            for k, v in payload.model_dump(exclude_unset=True).items()
            if v is not None or k == "description"
        }
        part = self.repo.update(part_id, changes)
        if part is None:
            raise NotFoundError("Part", part_id)
        return part

    def delete_part(self, part_id: int) -> None:
        if not self.repo.delete(part_id):
            raise NotFoundError("Part", part_id)
        log.info("deleted part id=%s (profiles and build items cascaded)", part_id)

    # === 兼容性档案 ===

    def list_profiles(self, part_id: int | None = None) -> List[CompatibilityProfile]:
        return self.repo.list_profiles(part_id)

    def get_profile(self, profile_id: int) -> CompatibilityProfile:
        profile = self.repo.get_profile(profile_id)
        if profile is None:
            raise NotFoundError("Compatibility profile", profile_id)
        return profile

    def create_profile(self, payload: CompatibilityProfileCreate) -> CompatibilityProfile:
        return self.repo.create_profile(payload.part_id, payload.model_dump(exclude={"part_id"}))

    def update_profile(self, profile_id: int, payload: CompatibilityProfileUpdate) -> CompatibilityProfile:
        changes = payload.model_dump(exclude_unset=True)
        # 换挂到其他配件时由仓库在写事务内重新校验外键
        if changes.get("part_id") is None:
            changes.pop("part_id", None)
        profile = self.repo.update_profile(profile_id, changes)
        if profile is None:
            raise NotFoundError("Compatibility profile", profile_id)
        return profile

    def delete_profile(self, profile_id: int) -> None:
        if not self.repo.delete_profile(profile_id):
            raise NotFoundError("Compatibility profile", profile_id)
