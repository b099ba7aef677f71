from __future__ import annotations

from contextlib import asynccontextmanager
from functools import lru_cache

import structlog
from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from geo.aoi import BBox
from layers.types import Category, LoadOptions
from loader.registry import LoaderRegistry
from lod.policy import categories_for_zoom
from logs import configure_logging
from tilecache.store import open_tile_cache

configure_logging()
logger = structlog.get_logger(__name__)


@lru_cache(maxsize=1)
def get_registry() -> LoaderRegistry:
    return LoaderRegistry(cache=open_tile_cache())


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    if get_registry.cache_info().currsize:
        await get_registry().aclose()
        get_registry.cache_clear()


app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class ApiBbox(BaseModel):
    minLon: float = Field(ge=-180.0, le=180.0)
    minLat: float = Field(ge=-90.0, le=90.0)
    maxLon: float = Field(ge=-180.0, le=180.0)
    maxLat: float = Field(ge=-90.0, le=90.0)

    def to_bbox(self) -> BBox:
        return BBox(
            min_lon=self.minLon,
            min_lat=self.minLat,
            max_lon=self.maxLon,
            max_lat=self.maxLat,
        ).normalized()


class ApiLoadOptions(BaseModel):
    pageSize: int | None = Field(default=None, ge=1, le=1000)
    activeOnly: bool = True


class ApiViewportRequest(BaseModel):
    bbox: ApiBbox
    zoom: float = Field(ge=0.0, le=24.0)
    # Omitted: categories follow the zoom level.
    category: Category | None = None
    # Loads within one session supersede each other; pass a per-map id.
    session: str = "default"
    options: ApiLoadOptions | None = None


@app.post("/viewport")
async def load_viewport(
    body: ApiViewportRequest, registry: LoaderRegistry = Depends(get_registry)
):
    loader = await registry.get(body.session)
    category = body.category.value if body.category is not None else None
    opts = body.options or ApiLoadOptions()

    features = await loader.load_viewport_data(
        body.bbox.to_bbox(),
        body.zoom,
        category,
        LoadOptions(page_size=opts.pageSize, active_only=opts.activeOnly),
    )
    stale = features is None
    features = features or []
    return {
        "type": "FeatureCollection",
        "features": [f.to_geojson() for f in features],
        "stale": stale,
        "stats": {
            "session": body.session,
            "zoom": body.zoom,
            "categories": categories_for_zoom(body.zoom, category),
            "featureCount": len(features),
        },
    }


@app.delete("/cache")
def clear_cache(registry: LoaderRegistry = Depends(get_registry)):
    registry.cache.clear()
    logger.info("tile cache cleared")
    return {"cleared": True}


@app.get("/cache/stats")
def cache_stats(registry: LoaderRegistry = Depends(get_registry)):
    return registry.cache.stats()


@app.get("/health")
def health(registry: LoaderRegistry = Depends(get_registry)):
    return {"ok": True, "cache": registry.cache.available}
