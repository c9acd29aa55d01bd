# Rutas de salud - /, /health, /cache/stats

import logging
from fastapi import APIRouter, Depends

from adapters.inbound.dependencies import AppDependencies, get_deps
from adapters.outbound.database import get_supported_types
from core.domain.responses import APIResponse, CacheStatsData, HealthData

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

VERSION = "1.0.0"


@router.get("/")
async def root():
    """Root endpoint - status básico"""
    return {"status": "ok", "version": VERSION}


@router.get("/health")
def health(deps: AppDependencies = Depends(get_deps)):
    """Conectividad del cache y motores soportados"""
    try:
        cache_ok = deps.store.is_connected()
    except Exception as e:
        logger.warning(f"Cache no disponible: {e}")
        cache_ok = False
    return HealthData(
        status="ok" if cache_ok else "degraded",
        cache=cache_ok,
        backends=get_supported_types(),
    ).model_dump()


@router.get("/cache/stats")
def cache_stats(deps: AppDependencies = Depends(get_deps)):
    stats = deps.chart_cache.stats()
    return APIResponse.ok(CacheStatsData(**stats).model_dump()).model_dump()
