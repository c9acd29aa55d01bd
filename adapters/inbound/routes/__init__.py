# Paquete de rutas - Módulos APIRouter

from adapters.inbound.routes.text_to_sql import router as text_to_sql_router
from adapters.inbound.routes.datasources import router as datasources_router
from adapters.inbound.routes.charts import router as charts_router
from adapters.inbound.routes.health import router as health_router

__all__ = ["text_to_sql_router", "datasources_router", "charts_router", "health_router"]
