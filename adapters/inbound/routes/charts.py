# Rutas de charts - ciclo de vida del cache por chart

import logging
from typing import List, Optional
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from adapters.inbound.dependencies import AppDependencies, get_chart_cache_dep, get_deps, http_status
from core.domain.responses import APIResponse, ErrorDetail
from core.services.cache.chart_cache import ChartCache

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/charts", tags=["Charts"])


class ChartModifiedBody(BaseModel):
    sql: str = Field(..., min_length=1)
    datasource_id: str = Field(..., min_length=1)
    selected_tables: List[str] = Field(..., min_length=1)


class RefreshBody(BaseModel):
    force_refresh: bool = True


@router.delete("/{chart_id}/cache")
def invalidate_chart_cache(chart_id: str, cache: ChartCache = Depends(get_chart_cache_dep)):
    cache.invalidate_by_identity(chart_id)
    return APIResponse.ok({"chart_id": chart_id, "invalidated": True}).model_dump()


@router.post("/{chart_id}/cache/modified")
def chart_modified(
    chart_id: str,
    body: ChartModifiedBody,
    cache: ChartCache = Depends(get_chart_cache_dep),
):
    """El chart cambió de SQL: su cache viejo se retira"""
    cache.on_chart_modified(chart_id, body.sql, body.datasource_id, body.selected_tables)
    return APIResponse.ok({"chart_id": chart_id, "updated": True}).model_dump()


@router.post("/{chart_id}/refresh")
def refresh_chart(
    chart_id: str,
    body: Optional[RefreshBody] = None,
    deps: AppDependencies = Depends(get_deps),
):
    """Re-ejecuta el SQL cacheado del chart sin pasar por el LLM"""
    force = body.force_refresh if body else True
    result = deps.pipeline.refresh_chart(chart_id, force_refresh=force)
    if result.success:
        return APIResponse.ok(result.to_dict()).model_dump()
    envelope = APIResponse(
        success=False,
        data=result.to_dict(),
        error=ErrorDetail(code=result.error_code or "INTERNAL_ERROR", message=result.error or ""),
    )
    return JSONResponse(status_code=http_status(result.error_code), content=jsonable_encoder(envelope.model_dump()))
