# Fábrica de LLM - Soporte multi-proveedor
# Proveedores: openai, deepseek, claude, groq, gemini, ollama

import logging
import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from config.settings import settings
from core.domain.errors import GenerationError
from core.ports.llm_port import LLMPort
from utils.logging import token_counter

logger = logging.getLogger(__name__)


class LLMWrapper(LLMPort):
    """Wrapper de LLM con conteo de tokens - Implementa LLMPort"""

    def __init__(self, llm, provider: str, model: str):
        self.llm = llm
        self.provider = provider
        self.model = model

    def invoke(self, messages: List[Any]) -> Any:
        input_text = " ".join(m.content for m in messages if hasattr(m, "content"))
        response = self.llm.invoke(messages)
        output_text = (
            response.content if hasattr(response, "content") else str(response)
        )
        token_counter.track(input_text, str(output_text), self.get_model_name())
        return response

    def get_model_name(self) -> str:
        return f"{self.provider}/{self.model}"


def _openai(model: str) -> Any:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=model,
        temperature=settings.ai.temperature,
        api_key=settings.ai.openai_api_key,
        max_tokens=settings.ai.max_tokens_response,
        timeout=settings.ai.timeout_seconds,
        max_retries=0,
    )


def _deepseek(model: str) -> Any:
    from langchain_openai import ChatOpenAI

    return ChatOpenAI(
        model=model,
        temperature=settings.ai.temperature,
        base_url="https://api.deepseek.com/v1",
        api_key=settings.ai.deepseek_api_key,
        max_tokens=settings.ai.max_tokens_response,
        timeout=settings.ai.timeout_seconds,
        max_retries=0,
    )


def _claude(model: str) -> Any:
    try:
        from langchain_anthropic import ChatAnthropic
    except ImportError:
        raise ImportError(
            "Instala langchain-anthropic: pip install langchain-anthropic"
        )

    return ChatAnthropic(
        model=model,
        temperature=settings.ai.temperature,
        anthropic_api_key=settings.ai.anthropic_api_key,
        max_tokens=settings.ai.max_tokens_response,
        timeout=settings.ai.timeout_seconds,
        max_retries=0,
    )


def _groq(model: str) -> Any:
    try:
        from langchain_groq import ChatGroq
    except ImportError:
        raise ImportError("Instala langchain-groq: pip install langchain-groq")

    return ChatGroq(
        model=model,
        temperature=settings.ai.temperature,
        groq_api_key=settings.ai.groq_api_key,
        max_tokens=settings.ai.max_tokens_response,
        timeout=settings.ai.timeout_seconds,
        max_retries=0,
    )


def _gemini(model: str) -> Any:
    try:
        from langchain_google_genai import ChatGoogleGenerativeAI
    except ImportError:
        raise ImportError(
            "Instala langchain-google-genai: pip install langchain-google-genai"
        )

    return ChatGoogleGenerativeAI(
        model=model,
        temperature=settings.ai.temperature,
        google_api_key=settings.ai.google_api_key,
        max_output_tokens=settings.ai.max_tokens_response,
        timeout=settings.ai.timeout_seconds,
        max_retries=0,
    )


def _ollama(model: str) -> Any:
    try:
        from langchain_ollama import ChatOllama
    except ImportError:
        raise ImportError("Instala langchain-ollama: pip install langchain-ollama")

    return ChatOllama(
        model=model,
        temperature=settings.ai.temperature,
        base_url=settings.ai.ollama_base_url,
    )


# proveedor -> (constructor, modelo por defecto)
PROVIDERS: Dict[str, Tuple[Callable[[str], Any], Callable[[], str]]] = {
    "openai": (_openai, lambda: settings.ai.openai_model),
    "deepseek": (_deepseek, lambda: settings.ai.deepseek_model),
    "claude": (_claude, lambda: settings.ai.anthropic_model),
    "groq": (_groq, lambda: settings.ai.groq_model),
    "gemini": (_gemini, lambda: settings.ai.google_model),
    "ollama": (_ollama, lambda: settings.ai.ollama_model),
}

PROVIDER_ALIASES = {"anthropic": "claude", "google": "gemini"}


class LLMRegistry:
    """
    Resuelve un cliente por (proveedor, modelo) en cada petición.
    Los clientes construidos se reutilizan entre peticiones.
    """

    def __init__(self, builders: Optional[Dict[str, Callable[[str], Any]]] = None):
        self._builders = builders or {name: b for name, (b, _) in PROVIDERS.items()}
        self._clients: Dict[Tuple[str, str], LLMWrapper] = {}
        self._lock = threading.Lock()

    def normalize(self, provider: Optional[str]) -> str:
        name = (provider or settings.ai.llm_provider).lower()
        return PROVIDER_ALIASES.get(name, name)

    def available(self) -> List[str]:
        return sorted(self._builders)

    def resolve(self, provider: Optional[str] = None, model: Optional[str] = None) -> LLMWrapper:
        """
        Raises:
            GenerationError: proveedor desconocido o imposible de inicializar
        """
        name = self.normalize(provider)
        if name not in self._builders:
            raise GenerationError(
                f"Proveedor '{name}' no soportado. Usa: {', '.join(self.available())}",
                provider=name,
            )
        model = model or settings.ai.llm_model or PROVIDERS.get(name, (None, lambda: ""))[1]()

        key = (name, model)
        with self._lock:
            if key not in self._clients:
                try:
                    self._clients[key] = LLMWrapper(self._builders[name](model), name, model)
                except Exception as e:
                    logger.error(f"Error inicializando {name}: {e}")
                    raise GenerationError(
                        f"No se pudo inicializar {name}/{model}: {e}", provider=name
                    ) from e
                logger.info(f"LLM: {name} ({model})")
            return self._clients[key]


_llm_registry = None


def get_llm_registry() -> LLMRegistry:
    global _llm_registry
    if _llm_registry is None:
        _llm_registry = LLMRegistry()
    return _llm_registry
