# Servicio de datasources - configuración, schema y diagnóstico

import logging
from typing import Any, Callable, Dict, Optional

from adapters.outbound.database import validate_config
from core.domain.datasource import DatasourceConfig
from core.domain.errors import ConfigError
from core.domain.schema import ConnectionTestResult, DatabaseSchema
from core.ports.credentials_port import CredentialDecryptor, DatasourceRegistry
from core.ports.database_port import DatabasePort
from core.services.schema.introspector import SchemaIntrospector, get_introspector

logger = logging.getLogger(__name__)


class DatasourceService:
    """
    Resuelve datasources por id y expone las operaciones de exploración.
    La configuración descifrada vive solo durante la petición.
    """

    def __init__(
        self,
        registry: DatasourceRegistry,
        decryptor: CredentialDecryptor,
        engine_factory: Callable[[DatasourceConfig], DatabasePort],
        introspector: Optional[SchemaIntrospector] = None,
    ):
        self.registry = registry
        self.decryptor = decryptor
        self.engine_factory = engine_factory
        self.introspector = introspector or get_introspector()

    def resolve_config(self, datasource_id: str) -> DatasourceConfig:
        """
        Raises:
            NotFoundError: id desconocido
            ConfigError: blob indescifrable o configuración inválida
        """
        blob = self.registry.get_encrypted_config(datasource_id)
        raw = self.decryptor.decrypt(blob)
        try:
            config = DatasourceConfig.from_dict(raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Configuración de datasource ilegible: {e}") from e

        errors = validate_config(config)
        if errors:
            raise ConfigError(
                f"Configuración inválida para '{datasource_id}'", errors=errors
            )
        return config

    def get_schema(self, datasource_id: str) -> DatabaseSchema:
        config = self.resolve_config(datasource_id)
        with self.engine_factory(config) as engine:
            schema = engine.get_schema()
        logger.info(f"Schema de {datasource_id}: {len(schema.tables)} tablas")
        return schema

    def get_table_details(
        self, datasource_id: str, schema: str, table: str
    ) -> Dict[str, Any]:
        """
        Tabla con muestra de filas. Un fallo de la muestra no es fatal:
        se reporta en warnings.
        """
        config = self.resolve_config(datasource_id)
        qualified = f"{schema}.{table}" if schema else table
        with self.engine_factory(config) as engine:
            info = engine.get_table_schema(qualified)
            sample = self.introspector.sample_table(engine, qualified)

        info.sample_data = sample.rows
        return {
            "table": info,
            "warnings": [sample.warning] if sample.warning else [],
        }

    def test_connection(self, config: DatasourceConfig) -> ConnectionTestResult:
        errors = validate_config(config)
        if errors:
            return ConnectionTestResult(
                success=False,
                message="Invalid configuration",
                error="; ".join(errors),
            )
        engine = self.engine_factory(config)
        result = engine.test_connection()
        logger.info(f"Test de conexión {config.backend}: success={result.success}")
        return result
