"""Catalog 模块：配件查询与目录维护"""

from .query import PartPage, PartQuery, part_matches, query_parts
from .service import CatalogService

__all__ = [
    "PartPage",
    "PartQuery",
    "part_matches",
    "query_parts",
    "CatalogService",
]
