# Generación de SQL y recuperación de errores
from core.services.sql.generator import SQLGenerator, GeneratedSQL, clean_sql
from core.services.sql.recovery import SQLErrorRecovery, RecoveryResult

__all__ = ["SQLGenerator", "GeneratedSQL", "clean_sql", "SQLErrorRecovery", "RecoveryResult"]
