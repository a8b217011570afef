from __future__ import annotations

import os
import tempfile
from pathlib import Path

# kartforge.main 在导入时就会建库，先把它指到临时目录
os.environ["KARTFORGE_DB_PATH"] = str(Path(tempfile.mkdtemp(prefix="kartforge-tests-")) / "kartforge.db")
os.environ["KARTFORGE_SEED_DEMO"] = "0"

import pytest
from fastapi.testclient import TestClient

from kartforge.builder import BuildAggregator
from kartforge.catalog import CatalogService
from kartforge.config import Settings
from kartforge.db import SQLiteBuildsRepository, SQLitePartsRepository
from kartforge.main import create_app
from kartforge.schemas import PartCreate

ADMIN_TOKEN = "test-admin-token"


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "kartforge.db"


@pytest.fixture
def parts_repo(db_path: Path) -> SQLitePartsRepository:
    return SQLitePartsRepository(db_path)


@pytest.fixture
def catalog(parts_repo: SQLitePartsRepository) -> CatalogService:
    return CatalogService(parts_repo)


@pytest.fixture
def builds(db_path: Path) -> BuildAggregator:
    return BuildAggregator(SQLiteBuildsRepository(db_path))


@pytest.fixture
def make_part(catalog: CatalogService):
    """按需创建配件，未指定的字段使用合理默认值"""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "name": f"Part {counter['n']}",
            "sku": f"SKU-{counter['n']:03d}",
            "brand": "Generic",
            "category": "other",
            "price": "10.00",
        }
        data.update(overrides)
        return catalog.create_part(PartCreate.model_validate(data))

    return _make


@pytest.fixture
def engine_part(make_part):
    return make_part(
        name="Predator 212 Engine",
        sku="PRED212",
        brand="Harbor Freight",
        category="engine",
        price="149.99",
        compatibility_profiles=[{"shaft_diameter": '3/4"', "engine_model": "212cc", "chain_size": None}],
    )


@pytest.fixture
def settings(db_path: Path) -> Settings:
    return Settings(db_path=db_path, admin_token=ADMIN_TOKEN, log_level="WARNING")


@pytest.fixture
def client(settings: Settings) -> TestClient:
    return TestClient(create_app(settings))


@pytest.fixture
def admin_headers() -> dict:
    return {"X-Admin-Token": ADMIN_TOKEN}
