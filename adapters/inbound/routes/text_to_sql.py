# Rutas de texto a SQL - /text-to-sql, /text-to-sql/validate

import logging
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from adapters.inbound.dependencies import AppDependencies, get_deps, http_status
from adapters.outbound.database import validate_config
from core.domain.datasource import DatasourceConfig
from core.domain.errors import ConfigError
from core.domain.query import TextToSQLRequest
from core.domain.responses import APIResponse, ErrorDetail

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/text-to-sql", tags=["Text to SQL"])


# Modelos de transferencia de datos
class TextToSQLBody(BaseModel):
    query: str = Field(..., min_length=1, max_length=2000, description="Pregunta en lenguaje natural")
    selected_tables: List[str] = Field(..., min_length=1, description="Tablas schema.tabla")
    datasource_id: str = Field(..., min_length=1)
    ai_provider: str = Field(..., min_length=1)
    ai_model: str = Field(..., min_length=1)
    max_retries: Optional[int] = Field(None, ge=0, le=5)
    chart_id: Optional[str] = None
    use_cache: bool = True
    force_refresh: bool = False
    current_sql: Optional[str] = Field(None, description="SQL actual del chart al modificarlo")
    datasource_config: Optional[Dict[str, Any]] = Field(
        None, description="Configuración en claro; si falta se resuelve por datasource_id"
    )

    @field_validator("query")
    @classmethod
    def query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query no puede estar vacía")
        return value.strip()

    @field_validator("selected_tables")
    @classmethod
    def tables_not_blank(cls, value: List[str]) -> List[str]:
        tables = [t.strip() for t in value if t and t.strip()]
        if not tables:
            raise ValueError("selected_tables no puede estar vacía")
        return tables


class ValidateSQLBody(BaseModel):
    datasource_id: str = Field(..., min_length=1)
    sql: str = Field(..., min_length=1)


def resolve_datasource(deps: AppDependencies, datasource_id: str, inline: Optional[Dict[str, Any]]) -> DatasourceConfig:
    if inline is None:
        return deps.datasources.resolve_config(datasource_id)
    errors = validate_config(inline)
    if errors:
        raise ConfigError("Configuración de datasource inválida", errors=errors)
    return DatasourceConfig.from_dict(inline)


@router.post("")
def text_to_sql(body: TextToSQLBody, deps: AppDependencies = Depends(get_deps)):
    """Genera SQL desde lenguaje natural, lo ejecuta y cachea el resultado"""
    config = resolve_datasource(deps, body.datasource_id, body.datasource_config)
    request = TextToSQLRequest(
        query=body.query,
        selected_tables=body.selected_tables,
        datasource_id=body.datasource_id,
        datasource_config=config,
        ai_provider=body.ai_provider,
        ai_model=body.ai_model,
        max_retries=body.max_retries,
        chart_id=body.chart_id,
        # Una configuración en claro no pertenece al datasource_id: sus filas no se cachean
        use_cache=body.use_cache and body.datasource_config is None,
        force_refresh=body.force_refresh,
        current_sql=body.current_sql,
    )
    result = deps.pipeline.generate_and_execute(request)

    if result.success:
        return APIResponse.ok(result.to_dict()).model_dump()

    logger.info(f"text-to-sql falló [{result.error_code}] tras {result.retry_count} reintentos")
    envelope = APIResponse(
        success=False,
        data=result.to_dict(),
        error=ErrorDetail(code=result.error_code or "INTERNAL_ERROR", message=result.error or ""),
    )
    return JSONResponse(status_code=http_status(result.error_code), content=jsonable_encoder(envelope.model_dump()))


@router.post("/validate")
def validate_sql(body: ValidateSQLBody, deps: AppDependencies = Depends(get_deps)):
    """Valida un SQL contra el datasource sin materializar resultados"""
    config = deps.datasources.resolve_config(body.datasource_id)
    validation = deps.pipeline.validate_sql(config, body.sql)
    return APIResponse.ok({"valid": validation.valid, "error": validation.error}).model_dump()
