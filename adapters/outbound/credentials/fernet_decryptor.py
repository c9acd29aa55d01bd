# Descifrado de configuraciones de datasource (Fernet)

import json
import logging
from typing import Any, Dict, Optional

from cryptography.fernet import Fernet, InvalidToken

from config.settings import settings
from core.domain.errors import ConfigError
from core.ports.credentials_port import CredentialDecryptor

logger = logging.getLogger(__name__)


class FernetCredentialDecryptor(CredentialDecryptor):
    """El blob es la configuración JSON cifrada con Fernet"""

    def __init__(self, key: Optional[str] = None):
        key = key or settings.security.encryption_key
        if not key:
            raise ConfigError("DATASOURCE_ENCRYPTION_KEY no configurada")
        try:
            self._fernet = Fernet(key.encode() if isinstance(key, str) else key)
        except (ValueError, TypeError) as e:
            raise ConfigError(f"Clave de cifrado inválida: {e}") from e

    def encrypt(self, config: Dict[str, Any]) -> str:
        return self._fernet.encrypt(json.dumps(config).encode("utf-8")).decode("ascii")

    def decrypt(self, blob: str) -> Dict[str, Any]:
        try:
            plain = self._fernet.decrypt(blob.encode("ascii"))
        except (InvalidToken, ValueError, TypeError, AttributeError) as e:
            # Nunca se registra el blob ni la clave
            logger.error("No se pudo descifrar la configuración del datasource")
            raise ConfigError("No se pudo descifrar la configuración del datasource") from e

        try:
            data = json.loads(plain.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise ConfigError("La configuración descifrada no es JSON válido") from e
        if not isinstance(data, dict):
            raise ConfigError("La configuración descifrada debe ser un objeto")
        return data
