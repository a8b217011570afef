from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


PartCategory = Literal[
    "engine",
    "clutch",
    "sprocket",
    "chain",
    "tire",
    "wheel",
    "brake",
    "frame",
    "seat",
    "steering",
    "other",
]

SLOT_CATEGORIES: tuple[str, ...] = get_args(PartCategory)

PROFILE_FIELDS = (
    "engine_model",
    "shaft_diameter",
    "bolt_pattern",
    "chain_size",
    "frame_type",
    "notes",
)


class WireModel(BaseModel):
    """JSON 字段使用 camelCase，Python 侧使用 snake_case"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def price_to_number(value: Decimal) -> float:
    # 价格最多两位小数，转 float 在分位上是精确的
    return float(value)


# === 实体 ===


class CompatibilityProfile(WireModel):
    id: int
    part_id: int
    engine_model: Optional[str] = None
    shaft_diameter: Optional[str] = None
    bolt_pattern: Optional[str] = None
    chain_size: Optional[str] = None
    frame_type: Optional[str] = None
    notes: Optional[str] = None


class Part(WireModel):
    id: int
    name: str
    sku: str
    brand: str
    category: PartCategory
    description: Optional[str] = None
    price: Decimal = Field(ge=0)
    image_urls: List[str] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime
    compatibility_profiles: List[CompatibilityProfile] = Field(default_factory=list)

    @field_serializer("price", when_used="json")
    def _price_json(self, value: Decimal) -> float:
        return price_to_number(value)


class Build(WireModel):
    id: int
    label: str
    created_at: datetime


class BuildItem(WireModel):
    id: int
    build_id: int
    part_id: int
    slot_category: PartCategory
    quantity: int = Field(ge=1)
    created_at: datetime
    part: Part


class BuildView(WireModel):
    build_id: int
    label: str
    created_at: datetime
    items: List[BuildItem] = Field(default_factory=list)
    total_price: Decimal = Decimal("0")

    @field_serializer("total_price", when_used="json")
    def _total_json(self, value: Decimal) -> float:
        return price_to_number(value)


# === 请求体 ===


class CompatibilityProfileIn(WireModel):
    engine_model: Optional[str] = None
    shaft_diameter: Optional[str] = None
    bolt_pattern: Optional[str] = None
    chain_size: Optional[str] = None
    frame_type: Optional[str] = None
    notes: Optional[str] = None


class CompatibilityProfileCreate(CompatibilityProfileIn):
    part_id: int


class CompatibilityProfileUpdate(CompatibilityProfileIn):
    part_id: Optional[int] = None


class PartCreate(WireModel):
    name: str = Field(min_length=1)
    sku: str = Field(min_length=1)
    brand: str = Field(min_length=1)
    category: PartCategory
    description: Optional[str] = None
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    image_urls: List[str] = Field(default_factory=list)
    compatibility_profiles: List[CompatibilityProfileIn] = Field(default_factory=list)


class PartUpdate(WireModel):
    name: Optional[str] = Field(default=None, min_length=1)
    sku: Optional[str] = Field(default=None, min_length=1)
    brand: Optional[str] = Field(default=None, min_length=1)
    category: Optional[PartCategory] = None
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    image_urls: Optional[List[str]] = None


class BuildCreate(WireModel):
    label: str = Field(min_length=1, validation_alias=AliasChoices("label", "userName"))


class BuildItemAdd(WireModel):
    part_id: int
    slot_category: PartCategory
    quantity: int = Field(default=1, ge=1)


class BuildItemCreate(BuildItemAdd):
    build_id: int


class BuildItemUpdate(WireModel):
    build_id: Optional[int] = None
    part_id: Optional[int] = None
    slot_category: Optional[PartCategory] = None
    quantity: Optional[int] = Field(default=None, ge=1)
