# Registro de datasources en archivo JSON: id -> configuración cifrada

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from config.settings import settings
from core.domain.errors import ConfigError, NotFoundError
from core.ports.credentials_port import DatasourceRegistry

logger = logging.getLogger(__name__)


class FileDatasourceRegistry(DatasourceRegistry):
    """
    Formato: {"datasources": {"<id>": "<blob cifrado>"}}
    Se relee en cada consulta para tomar altas sin reiniciar.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = Path(path or settings.security.datasources_file)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            logger.warning(f"No existe el registro de datasources: {self.path}")
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Registro de datasources ilegible: {e}") from e
        return data.get("datasources", {})

    def list_ids(self):
        return sorted(self._load())

    def get_encrypted_config(self, datasource_id: str) -> str:
        blob = self._load().get(datasource_id)
        if not blob:
            raise NotFoundError(
                f"Datasource '{datasource_id}' no encontrado", resource="datasource"
            )
        return blob

    def register(self, datasource_id: str, blob: str) -> None:
        data = self._load()
        data[datasource_id] = blob
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump({"datasources": data}, f, indent=2)
        logger.info(f"Datasource registrado: {datasource_id}")
