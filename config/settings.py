"""Configuración del proyecto."""

import os
from pathlib import Path
from dotenv import load_dotenv
from pydantic_settings import BaseSettings

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


class RedisSettings(BaseSettings):
    url: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")


class CacheSettings(BaseSettings):
    # "redis" en producción, "memory" para desarrollo local y tests
    backend: str = os.getenv("CACHE_BACKEND", "redis")
    ttl_seconds: int = int(os.getenv("CACHE_TTL_SECONDS", "3600"))
    prefix: str = "chart_data:"


class AISettings(BaseSettings):
    llm_provider: str = os.getenv("LLM_PROVIDER", "openai")
    llm_model: str = os.getenv("LLM_MODEL", "")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    deepseek_api_key: str = os.getenv("DEEPSEEK_API_KEY", "")
    anthropic_api_key: str = os.getenv("ANTHROPIC_API_KEY", "")
    groq_api_key: str = os.getenv("GROQ_API_KEY", "")
    google_api_key: str = os.getenv("GOOGLE_API_KEY", "")
    ollama_base_url: str = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
    openai_model: str = "gpt-4o-mini"
    deepseek_model: str = "deepseek-chat"
    anthropic_model: str = "claude-3-5-sonnet-latest"
    groq_model: str = "llama-3.3-70b-versatile"
    google_model: str = "gemini-1.5-flash"
    ollama_model: str = "llama3.1"
    temperature: float = 0.1
    max_tokens_response: int = 1000
    timeout_seconds: int = int(os.getenv("LLM_TIMEOUT_SECONDS", "60"))


class QuerySettings(BaseSettings):
    row_limit: int = int(os.getenv("QUERY_ROW_LIMIT", "1000"))
    statement_timeout_seconds: int = int(os.getenv("QUERY_TIMEOUT_SECONDS", "30"))
    connect_timeout_seconds: int = 5
    sample_rows: int = 5
    context_sample_rows: int = 3
    max_context_tables: int = 10
    max_context_chars: int = 12000
    default_max_retries: int = 3
    max_retries_cap: int = 5
    # Ejecuta EXPLAIN antes de la query real cuando el motor lo soporta
    prevalidate: bool = os.getenv("QUERY_PREVALIDATE", "false").lower() == "true"


class SecuritySettings(BaseSettings):
    encryption_key: str = os.getenv("DATASOURCE_ENCRYPTION_KEY", "")
    datasources_file: str = os.getenv(
        "DATASOURCES_FILE", str(BASE_DIR / "data" / "datasources.json")
    )


class LogSettings(BaseSettings):
    level: str = os.getenv("LOG_LEVEL", "INFO")


class Settings(BaseSettings):
    app_name: str = "ChartSQL"
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"
    redis: RedisSettings = RedisSettings()
    cache: CacheSettings = CacheSettings()
    ai: AISettings = AISettings()
    query: QuerySettings = QuerySettings()
    security: SecuritySettings = SecuritySettings()
    logs: LogSettings = LogSettings()


settings = Settings()
