from adapters.outbound.credentials.fernet_decryptor import FernetCredentialDecryptor
from adapters.outbound.credentials.file_registry import FileDatasourceRegistry

__all__ = ["FernetCredentialDecryptor", "FileDatasourceRegistry"]
