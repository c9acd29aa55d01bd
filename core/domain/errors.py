# Excepciones personalizadas para ChartSQL

from typing import Optional


class ChartSQLError(Exception):
    """Excepción base para ChartSQL"""

    def __init__(self, message: str, code: str, details: dict = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigError(ChartSQLError):
    """Configuración de datasource inválida, ausente o imposible de descifrar"""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(
            message=message,
            code="CONFIG_ERROR",
            details={"errors": errors} if errors else {},
        )


class ConnectionError(ChartSQLError):
    """Error de transporte o autenticación contra la base de datos"""

    def __init__(
        self,
        message: str = "No se pudo conectar a la base de datos.",
        backend: str = None,
    ):
        super().__init__(
            message=message, code="CONNECTION_ERROR", details={"backend": backend}
        )


class UnsupportedBackendError(ChartSQLError):
    """Tipo de base de datos sin adaptador"""

    def __init__(self, backend: str, supported: Optional[list] = None):
        super().__init__(
            message=f"Tipo de base de datos no soportado: '{backend}'",
            code="UNSUPPORTED_BACKEND",
            details={"backend": backend, "supported": supported or []},
        )
        self.backend = backend


class UnsafeQueryError(ChartSQLError):
    """El SQL contiene una operación de la lista de denegación"""

    def __init__(self, pattern: str, message: str = None):
        super().__init__(
            message=message or f"Operación no permitida en la consulta: {pattern}",
            code="UNSAFE_QUERY",
            details={"pattern": pattern},
        )
        self.pattern = pattern


class GenerationError(ChartSQLError):
    """El servicio de completado falló o devolvió una respuesta inutilizable"""

    def __init__(self, message: str, provider: str = None, raw: str = None):
        super().__init__(
            message=message, code="GENERATION_ERROR", details={"provider": provider}
        )
        self.raw = raw


class ExecutionError(ChartSQLError):
    """Error del motor al ejecutar o validar SQL; conserva el mensaje nativo"""

    def __init__(self, message: str, sql: str = None):
        super().__init__(
            message=message,
            code="EXECUTION_ERROR",
            details={"sql": sql[:200] if sql else None},
        )
        self.sql = sql


class NotFoundError(ChartSQLError):
    """Schema, tabla o datasource inexistente o no visible"""

    def __init__(self, message: str, resource: str = None):
        super().__init__(
            message=message, code="NOT_FOUND", details={"resource": resource}
        )


class ContextError(ChartSQLError):
    """No se pudo construir el contexto de schema para el prompt"""

    def __init__(self, message: str):
        super().__init__(message=message, code="CONTEXT_ERROR")


class CacheError(ChartSQLError):
    """Errores del store de cache; se registran y nunca se propagan al usuario"""

    def __init__(self, message: str, cache_type: str = None):
        super().__init__(
            message=message, code="CACHE_ERROR", details={"cache_type": cache_type}
        )

