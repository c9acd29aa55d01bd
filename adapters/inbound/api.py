# API Adapter - FastAPI entry point

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from adapters.inbound.dependencies import get_deps, http_status
from adapters.inbound.routes import (
    charts_router,
    datasources_router,
    health_router,
    text_to_sql_router,
)
from config.settings import settings
from core.domain.errors import ChartSQLError
from core.domain.responses import APIResponse
from utils.logging import setup_logging

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Inicializa componentes al startup"""
    logger.info(f"Iniciando {settings.app_name} API...")
    try:
        get_deps().initialize_all()
    except ChartSQLError as e:
        # Sin clave de cifrado la API arranca; las rutas de datasource fallan con 400
        logger.warning(f"Inicialización parcial: {e.message}")
    yield
    logger.info("Cerrando API...")


app = FastAPI(
    title=f"{settings.app_name} API",
    description="Texto a SQL para charts sobre datasources heterogéneos",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ChartSQLError)
async def chartsql_error_handler(request: Request, exc: ChartSQLError):
    logger.warning(f"{request.url.path} -> {exc.code}: {exc.message}")
    return JSONResponse(
        status_code=http_status(exc.code),
        content=APIResponse.from_exception(exc).model_dump(),
    )


app.include_router(health_router)
app.include_router(text_to_sql_router)
app.include_router(datasources_router)
app.include_router(charts_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("adapters.inbound.api:app", host="0.0.0.0", port=8000, reload=settings.debug)
