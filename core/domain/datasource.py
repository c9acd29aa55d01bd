# Entidades de Datasource

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Dict, Optional


class BackendType(str, Enum):
    """Familias de motores reconocidas"""

    POSTGRESQL = "postgresql"
    MYSQL = "mysql"
    SQLSERVER = "sqlserver"
    SQLITE = "sqlite"
    MONGODB = "mongodb"


# Alias aceptados en la configuración (tal como los escribe la gente)
BACKEND_ALIASES = {
    "postgres": "postgresql",
    "pg": "postgresql",
    "mariadb": "mysql",
    "mssql": "sqlserver",
}

_CAMEL_KEYS = {
    "connectionString": "connection_string",
    "user": "username",
    "sslMode": "ssl_mode",
}


@dataclass(frozen=True)
class DatasourceConfig:
    """
    Configuración descifrada de un datasource.
    Solo existe en memoria; nunca se persiste ni se registra con credenciales.
    """

    type: str
    database: str = ""
    host: Optional[str] = None
    port: Optional[int] = None
    username: Optional[str] = None
    password: Optional[str] = field(default=None, repr=False)
    ssl: bool = False
    ssl_mode: Optional[str] = None
    schema: Optional[str] = None
    connection_string: Optional[str] = field(default=None, repr=False)
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def backend(self) -> str:
        raw = (self.type or "").lower()
        return BACKEND_ALIASES.get(raw, raw)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatasourceConfig":
        """Construye desde dict; acepta claves camelCase del registro"""
        known = {f.name for f in fields(cls)}
        normalized = {}
        for key, value in data.items():
            key = _CAMEL_KEYS.get(key, key)
            if key in known:
                normalized[key] = value
        if normalized.get("port") not in (None, ""):
            try:
                normalized["port"] = int(normalized["port"])
            except (TypeError, ValueError):
                # validate_config reporta el puerto inválido
                pass
        normalized.setdefault("type", "")
        return cls(**normalized)

    def safe_dict(self) -> Dict[str, Any]:
        """Configuración sin datos sensibles"""
        return {
            "type": self.backend,
            "host": self.host,
            "port": self.port,
            "database": self.database,
            "username": self.username,
            "ssl": self.ssl,
            "schema": self.schema,
        }
