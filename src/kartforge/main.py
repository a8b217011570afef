from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Header, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .builder import BuildAggregator
from .catalog import CatalogService, PartQuery
from .config import Settings, configure_logging, load_settings
from .db import SQLiteBuildsRepository, SQLitePartsRepository
from .errors import AdminNotConfiguredError, KartForgeError, UnauthorizedError
from .schemas import (
    BuildCreate,
    BuildItemAdd,
    BuildItemCreate,
    BuildItemUpdate,
    CompatibilityProfileCreate,
    CompatibilityProfileUpdate,
    PartCreate,
    PartUpdate,
)
from .seed import seed_demo_data

log = logging.getLogger("kartforge.api")


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.catalog


def get_builds(request: Request) -> BuildAggregator:
    return request.app.state.builds


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(default=None),
) -> None:
    expected: Optional[str] = request.app.state.settings.admin_token
    if not expected:
        log.warning("ADMIN_TOKEN is not set; admin endpoints are disabled")
        raise AdminNotConfiguredError()
    # compare_digest 只接受 ASCII 的 str，统一按 UTF-8 字节比较
    if not x_admin_token or not secrets.compare_digest(
        x_admin_token.encode("utf-8"), expected.encode("utf-8")
    ):
        raise UnauthorizedError()


# === 配件 ===

parts_router = APIRouter()


@parts_router.get("")
def list_parts(
    q: Optional[str] = None,
    category: Optional[str] = None,
    brand: Optional[str] = None,
    engine_model: Optional[str] = None,
    chain_size: Optional[str] = None,
    price_min: Optional[Decimal] = None,
    price_max: Optional[Decimal] = None,
    page: int = 1,
    page_size: int = 20,
    catalog: CatalogService = Depends(get_catalog),
):
    query = PartQuery(
        q=q,
        category=category,
        brand=brand,
        engine_model=engine_model,
        chain_size=chain_size,
        price_min=price_min,
        price_max=price_max,
        page=page,
        page_size=page_size,
    )
    return _dump(catalog.list_parts(query))


@parts_router.get("/{part_id}")
def get_part(part_id: int, catalog: CatalogService = Depends(get_catalog)):
    return _dump(catalog.get_part(part_id))


@parts_router.post("", status_code=201, dependencies=[Depends(require_admin)])
def create_part(payload: PartCreate, catalog: CatalogService = Depends(get_catalog)):
    return _dump(catalog.create_part(payload))


@parts_router.put("/{part_id}", dependencies=[Depends(require_admin)])
def update_part(part_id: int, payload: PartUpdate, catalog: CatalogService = Depends(get_catalog)):
    return _dump(catalog.update_part(part_id, payload))


@parts_router.delete("/{part_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_part(part_id: int, catalog: CatalogService = Depends(get_catalog)):
    catalog.delete_part(part_id)
    return Response(status_code=204)


# === 装机 ===

builds_router = APIRouter()


@builds_router.get("")
def list_builds(builds: BuildAggregator = Depends(get_builds)):
    return [_dump(b) for b in builds.list_builds()]


@builds_router.post("", status_code=201)
def create_build(payload: BuildCreate, builds: BuildAggregator = Depends(get_builds)):
    return _dump(builds.create_build(payload.label))


@builds_router.get("/{build_id}")
def get_build(build_id: int, builds: BuildAggregator = Depends(get_builds)):
    return _dump(builds.get_build(build_id))


@builds_router.post("/{build_id}/add", status_code=201)
def add_build_item(build_id: int, payload: BuildItemAdd, builds: BuildAggregator = Depends(get_builds)):
    item = builds.add_item(build_id, payload.part_id, payload.slot_category, payload.quantity)
    return _dump(item)


@builds_router.delete("/{build_id}", status_code=204)
def delete_build(build_id: int, builds: BuildAggregator = Depends(get_builds)):
    builds.delete_build(build_id)
    return Response(status_code=204)


# === 装机条目 ===

build_items_router = APIRouter()


@build_items_router.get("")
def list_build_items(
    build_id: Optional[int] = Query(default=None, alias="buildId"),
    part_id: Optional[int] = Query(default=None, alias="partId"),
    slot_category: Optional[str] = Query(default=None, alias="slotCategory"),
    builds: BuildAggregator = Depends(get_builds),
):
    items = builds.list_items(build_id=build_id, part_id=part_id, slot_category=slot_category or None)
    return [_dump(i) for i in items]


@build_items_router.get("/{item_id}")
def get_build_item(item_id: int, builds: BuildAggregator = Depends(get_builds)):
    return _dump(builds.get_item(item_id))


@build_items_router.post("", status_code=201)
def create_build_item(payload: BuildItemCreate, builds: BuildAggregator = Depends(get_builds)):
    item = builds.create_item(payload.build_id, payload.part_id, payload.slot_category, payload.quantity)
    return _dump(item)


@build_items_router.put("/{item_id}")
def update_build_item(item_id: int, payload: BuildItemUpdate, builds: BuildAggregator = Depends(get_builds)):
    return _dump(builds.update_item(item_id, payload.model_dump(exclude_unset=True)))


@build_items_router.delete("/{item_id}", status_code=204)
def delete_build_item(item_id: int, builds: BuildAggregator = Depends(get_builds)):
    builds.remove_item(item_id)
    return Response(status_code=204)


# === 兼容性档案 ===

profiles_router = APIRouter()


@profiles_router.get("")
def list_profiles(
    part_id: Optional[int] = Query(default=None, alias="partId"),
    catalog: CatalogService = Depends(get_catalog),
):
    return [_dump(p) for p in catalog.list_profiles(part_id)]


@profiles_router.get("/{profile_id}")
def get_profile(profile_id: int, catalog: CatalogService = Depends(get_catalog)):
    return _dump(catalog.get_profile(profile_id))


@profiles_router.post("", status_code=201)
def create_profile(payload: CompatibilityProfileCreate, catalog: CatalogService = Depends(get_catalog)):
    return _dump(catalog.create_profile(payload))


@profiles_router.put("/{profile_id}")
def update_profile(
    profile_id: int,
    payload: CompatibilityProfileUpdate,
    catalog: CatalogService = Depends(get_catalog),
):
    return _dump(catalog.update_profile(profile_id, payload))


@profiles_router.delete("/{profile_id}", status_code=204)
def delete_profile(profile_id: int, catalog: CatalogService = Depends(get_catalog)):
    catalog.delete_profile(profile_id)
    return Response(status_code=204)


# === 错误处理 ===


def _validation_details(exc: RequestValidationError) -> List[dict]:
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc) or "body", "message": err.get("msg", "invalid value")})
    return details


async def _handle_kartforge_error(request: Request, exc: KartForgeError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def _handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"error": "Validation error", "details": _validation_details(exc)},
    )


async def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    parts_repo = SQLitePartsRepository(settings.db_path)
    catalog = CatalogService(parts_repo)
    builds = BuildAggregator(SQLiteBuildsRepository(settings.db_path))

    if settings.seed_demo and parts_repo.count() == 0:
        result = seed_demo_data(catalog, builds)
        log.info("demo catalog loaded: %d parts", result["parts"])
    if not settings.admin_token:
        log.warning("ADMIN_TOKEN is not set; catalog writes are disabled")

    app = FastAPI(title="KartForge")
    app.state.settings = settings
    app.state.catalog = catalog
    app.state.builds = builds

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(KartForgeError, _handle_kartforge_error)
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(Exception, _handle_unexpected)

    @app.get("/health")
    def health():
        return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}

    for prefix in ("", "/api"):
        app.include_router(parts_router, prefix=f"{prefix}/parts")
        app.include_router(builds_router, prefix=f"{prefix}/builds")
    app.include_router(build_items_router, prefix="/api/build-items")
    app.include_router(profiles_router, prefix="/api/compatibility-profiles")
    return app


app = create_app()


def main(host: str = "127.0.0.1", port: int = 8000):
    import uvicorn
    uvicorn.run("kartforge.main:app", host=host, port=port, reload=False)


if __name__ == "__main__":
    main()
