# Servicios del núcleo
from core.services.pipeline import TextToSQLPipeline
from core.services.datasource import DatasourceService
from core.services.cache.chart_cache import ChartCache
from core.services.schema.introspector import SchemaIntrospector, get_introspector
from core.services.sql.generator import SQLGenerator, GeneratedSQL, get_sql_generator
from core.services.sql.recovery import SQLErrorRecovery, get_error_recovery

__all__ = [
    "TextToSQLPipeline",
    "DatasourceService",
    "ChartCache",
    "SchemaIntrospector",
    "get_introspector",
    "SQLGenerator",
    "GeneratedSQL",
    "get_sql_generator",
    "SQLErrorRecovery",
    "get_error_recovery",
]
