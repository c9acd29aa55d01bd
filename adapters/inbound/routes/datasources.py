# Rutas de datasources - conexión, schema y detalle de tablas

import logging
from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from adapters.inbound.dependencies import get_datasources_dep
from core.domain.datasource import DatasourceConfig
from core.domain.responses import APIResponse, ErrorDetail, SchemaData, TableDetailsData
from core.services.datasource import DatasourceService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/datasources", tags=["Datasources"])


class DatasourceConfigBody(BaseModel):
    type: str = Field(..., min_length=1, description="postgresql, mysql, sqlserver, sqlite")
    host: Optional[str] = None
    port: Optional[int] = None
    database: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    ssl: bool = False
    ssl_mode: Optional[str] = None
    connection_string: Optional[str] = None
    options: Dict[str, Any] = {}


@router.post("/test-connection")
def test_connection(
    body: DatasourceConfigBody,
    service: DatasourceService = Depends(get_datasources_dep),
):
    """Valida la configuración y hace un round-trip al servidor"""
    config = DatasourceConfig.from_dict(body.model_dump(exclude_none=True))
    result = service.test_connection(config)
    error = None
    if not result.success:
        error = ErrorDetail(code="CONNECTION_ERROR", message=result.error or "")
    return APIResponse(success=result.success, data=result.to_dict(), error=error).model_dump()


@router.get("/{datasource_id}/schema")
def get_schema(
    datasource_id: str,
    service: DatasourceService = Depends(get_datasources_dep),
):
    schema = service.get_schema(datasource_id)
    data = SchemaData(
        schemas=schema.schemas,
        tables=[
            {
                "name": t.name,
                "schema": t.schema,
                "qualified_name": t.qualified_name,
                "row_count": t.row_count,
                "column_count": t.column_count,
                "description": t.description,
                "columns": [c.name for c in t.columns],
            }
            for t in schema.tables
        ],
    )
    return APIResponse.ok(data.model_dump()).model_dump()


@router.get("/{datasource_id}/tables/{schema}/{table}")
def get_table_details(
    datasource_id: str,
    schema: str,
    table: str,
    service: DatasourceService = Depends(get_datasources_dep),
):
    """Columnas, constraints, índices y muestra de filas"""
    details = service.get_table_details(datasource_id, schema, table)
    info = details["table"]
    data = TableDetailsData(
        name=info.name,
        schema_name=info.schema,
        columns=[c.__dict__.copy() for c in info.columns],
        constraints=info.constraints,
        indexes=info.indexes,
        sample_data=info.sample_data,
        warnings=details["warnings"],
    )
    return APIResponse.ok(data.model_dump()).model_dump()
