# Proveedores de LLM
from adapters.outbound.llm.llm_factory import LLMRegistry, LLMWrapper, get_llm_registry

__all__ = ["LLMRegistry", "LLMWrapper", "get_llm_registry"]
