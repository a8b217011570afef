"""
演示数据 - Demo catalog seeding

写入一套卡丁车示例目录和一个示例装机。已存在的 SKU 会被跳过，重复运行是安全的。
Loads a sample go-kart catalog plus one sample build. Existing SKUs are
skipped, so running it twice is safe.
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, List

from .builder import BuildAggregator
from .catalog import CatalogService
from .config import configure_logging, load_settings
from .db import SQLiteBuildsRepository, SQLitePartsRepository
from .schemas import PartCreate

log = logging.getLogger("kartforge.seed")


DEMO_PARTS: List[dict] = [
    {
        "name": "Predator 212 Engine",
        "sku": "PRED212",
        "brand": "Harbor Freight",
        "category": "engine",
        "description": "212cc 4-stroke engine, 6.5 HP",
        "price": "149.99",
        "compatibility_profiles": [
            {"shaft_diameter": '3/4"', "engine_model": "212cc", "notes": "Keyed shaft, max RPM 3600, gasoline fuel"},
        ],
    },
    {
        "name": "Tillotson 212cc Engine",
        "sku": "TIL-212R",
        "brand": "Tillotson",
        "category": "engine",
        "description": "212cc racing engine with billet flywheel",
        "price": "299.99",
        "compatibility_profiles": [
            {"shaft_diameter": '3/4"', "engine_model": "Tillotson 212"},
        ],
    },
    {
        "name": "Max Torque Clutch",
        "sku": "MT-12T",
        "brand": "Max Torque",
        "category": "clutch",
        "description": '12 tooth centrifugal clutch for 3/4" shaft',
        "price": "45.99",
        "compatibility_profiles": [
            {"shaft_diameter": '3/4"', "chain_size": "#35", "notes": "12 tooth, engagement RPM 1800"},
        ],
    },
    {
        "name": "60T Sprocket",
        "sku": "GPS-60T",
        "brand": "Go Power Sports",
        "category": "sprocket",
        "description": "60 tooth #35 chain sprocket",
        "price": "24.99",
        "compatibility_profiles": [
            {"chain_size": "#35", "bolt_pattern": "4-bolt", "notes": "60 tooth sprocket"},
        ],
    },
    {
        "name": "#35 Chain 10ft",
        "sku": "GPS-CHAIN35-10",
        "brand": "Go Power Sports",
        "category": "chain",
        "description": "10 foot #35 roller chain",
        "price": "19.99",
        "compatibility_profiles": [
            {"chain_size": "#35", "notes": '10ft length, 3/8" pitch'},
        ],
    },
    {
        "name": "Off-Road Tires - 18x9.5-8",
        "sku": "CAR-18-95-8",
        "brand": "Carlisle",
        "category": "tire",
        "price": "34.99",
    },
    {
        "name": "Hydraulic Brake Kit for Live Axle",
        "sku": "AZU-BRK-HYD",
        "brand": "Azusa",
        "category": "brake",
        "price": "129.99",
    },
    {
        "name": "Go-Kart Frame Kit - 36\" Wheelbase",
        "sku": "AZU-FRM-36",
        "brand": "Azusa",
        "category": "frame",
        "price": "249.99",
        "compatibility_profiles": [
            {"frame_type": "36in wheelbase", "notes": "Accepts 1in live axle"},
        ],
    },
    {
        "name": "Steering Wheel Kit",
        "sku": "AZU-STE-001",
        "brand": "Azusa",
        "category": "steering",
        "price": "49.99",
    },
]

DEMO_BUILD_LABEL = "John Doe"
DEMO_BUILD_ITEMS = [
    ("PRED212", "engine"),
    ("MT-12T", "clutch"),
    ("GPS-60T", "sprocket"),
    ("GPS-CHAIN35-10", "chain"),
]


def seed_demo_data(catalog: CatalogService, builds: BuildAggregator) -> Dict[str, int]:
    """写入演示数据，返回本次新增的数量"""
    created_parts = 0
    created_profiles = 0
    by_sku = {}
    for raw in DEMO_PARTS:
        existing = catalog.repo.find_by_sku(raw["sku"])
        if existing is not None:
            by_sku[raw["sku"]] = existing
            continue
        part = catalog.create_part(PartCreate.model_validate(raw))
        by_sku[part.sku] = part
        created_parts += 1
        created_profiles += len(part.compatibility_profiles)

    created_builds = 0
    created_items = 0
    if created_parts:
        build = builds.create_build(DEMO_BUILD_LABEL)
        created_builds += 1
        for sku, slot in DEMO_BUILD_ITEMS:
            builds.add_item(build.id, by_sku[sku].id, slot, 1)
            created_items += 1

    result = {
        "parts": created_parts,
        "compatibility_profiles": created_profiles,
        "builds": created_builds,
        "build_items": created_items,
    }
    log.info("seeding completed: %s", result)
    return result


def main(argv: List[str] | None = None) -> int:
    settings = load_settings()
    parser = argparse.ArgumentParser(description="Load the KartForge demo catalog")
    parser.add_argument("--db", type=Path, default=settings.db_path, help="SQLite database path")
    args = parser.parse_args(argv)

    configure_logging(settings.log_level)
    parts_repo = SQLitePartsRepository(args.db)
    result = seed_demo_data(
        CatalogService(parts_repo),
        BuildAggregator(SQLiteBuildsRepository(args.db)),
    )
    print(f"[KartForge] Seeded {args.db}: " + ", ".join(f"{k}={v}" for k, v in result.items()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
