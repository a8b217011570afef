from decimal import Decimal

import pytest

from kartforge.catalog import PartQuery
from kartforge.errors import ConflictError, NotFoundError
from kartforge.schemas import (
    CompatibilityProfileCreate,
    CompatibilityProfileUpdate,
    PartCreate,
    PartUpdate,
)


def test_create_part_with_nested_profiles(catalog, engine_part):
    assert engine_part.id > 0
    assert engine_part.price == Decimal("149.99")
    assert len(engine_part.compatibility_profiles) == 1
    profile = engine_part.compatibility_profiles[0]
    assert profile.part_id == engine_part.id
    assert profile.shaft_diameter == '3/4"'
    assert profile.chain_size is None

    fetched = catalog.get_part(engine_part.id)
    assert fetched == engine_part


def test_price_survives_storage_exactly(make_part, catalog):
    part = make_part(price="0.10")
    assert catalog.get_part(part.id).price == Decimal("0.10")


def test_duplicate_sku_is_a_conflict(make_part):
    make_part(sku="DUP-1")
    with pytest.raises(ConflictError):
        make_part(sku="DUP-1")


def test_get_missing_part_raises_not_found(catalog):
    with pytest.raises(NotFoundError) as exc:
        catalog.get_part(999)
    assert exc.value.message == "Part not found"


def test_list_parts_uses_query_engine(catalog, make_part):
    make_part(name="Alpha", category="engine")
    make_part(name="Beta", category="tire")
    gamma = make_part(name="Gamma", category="engine")

    page = catalog.list_parts(PartQuery(category="engine", page_size=1))
    assert page.total == 2
    assert [p.id for p in page.items] == [gamma.id]


def test_update_part_changes_only_given_fields(catalog, engine_part):
    updated = catalog.update_part(engine_part.id, PartUpdate(price=Decimal("139.99")))
    assert updated.price == Decimal("139.99")
    assert updated.name == engine_part.name
    assert updated.updated_at >= engine_part.updated_at
    assert updated.created_at == engine_part.created_at


def test_update_part_to_taken_sku_conflicts(catalog, make_part):
    make_part(sku="TAKEN")
    other = make_part(sku="FREE")
    with pytest.raises(ConflictError):
        catalog.update_part(other.id, PartUpdate(sku="TAKEN"))


def test_delete_part_cascades_to_profiles(catalog, engine_part):
    catalog.delete_part(engine_part.id)
    with pytest.raises(NotFoundError):
        catalog.get_part(engine_part.id)
    assert catalog.list_profiles(engine_part.id) == []
    with pytest.raises(NotFoundError):
        catalog.delete_part(engine_part.id)


def test_profile_crud(catalog, make_part):
    part = make_part()
    profile = catalog.create_profile(CompatibilityProfileCreate(part_id=part.id, chain_size="#35"))
    assert catalog.get_profile(profile.id).chain_size == "#35"
    assert [p.id for p in catalog.list_profiles(part.id)] == [profile.id]

    updated = catalog.update_profile(profile.id, CompatibilityProfileUpdate(frame_type="Live axle"))
    assert updated.frame_type == "Live axle"
    assert updated.chain_size == "#35"

    cleared = catalog.update_profile(profile.id, CompatibilityProfileUpdate(chain_size=None))
    assert cleared.chain_size is None

    catalog.delete_profile(profile.id)
    with pytest.raises(NotFoundError):
        catalog.get_profile(profile.id)


def test_create_profile_requires_existing_part(catalog):
    with pytest.raises(NotFoundError) as exc:
        catalog.create_profile(CompatibilityProfileCreate(part_id=404, notes="orphan"))
    assert exc.value.entity == "Part"


def test_moving_profile_to_missing_part_is_rejected(catalog, engine_part):
    profile_id = engine_part.compatibility_profiles[0].id
    with pytest.raises(NotFoundError):
        catalog.update_profile(profile_id, CompatibilityProfileUpdate(part_id=404))
    assert catalog.get_profile(profile_id).part_id == engine_part.id


def test_profile_with_no_attributes_is_allowed(catalog, make_part):
    part = make_part()
    profile = catalog.create_profile(CompatibilityProfileCreate(part_id=part.id))
    assert profile.engine_model is None and profile.notes is None


def test_catalog_profiles_list_newest_first(catalog, make_part):
    part = make_part(compatibility_profiles=[{"notes": "a"}, {"notes": "b"}])
    notes = [p.notes for p in catalog.list_profiles(part.id)]
    assert notes == ["b", "a"]


def test_part_create_requires_positive_price():
    with pytest.raises(ValueError):
        PartCreate(name="X", sku="X", brand="X", category="other", price=Decimal("0"))
