import logging
import tiktoken
from config.settings import settings


def setup_logging():
    level = logging.DEBUG if settings.debug else settings.logs.level
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if settings.debug
        else "%(asctime)s - %(levelname)s - %(message)s",
    )
    for noisy in ["httpx", "httpcore", "openai", "anthropic", "urllib3", "asyncio"]:
        logging.getLogger(noisy).setLevel(logging.WARNING)


class TokenCounter:
    def __init__(self):
        try:
            self.encoder = tiktoken.get_encoding("cl100k_base")
        except Exception:
            # Sin red para descargar el encoding: se estima por longitud
            self.encoder = None
        self.total_tokens = 0
        self.calls = []

    def count(self, text: str) -> int:
        if not self.encoder:
            return len(text) // 4
        return len(self.encoder.encode(text))

    def track(self, input_text: str, output_text: str, model: str = "openai"):
        input_tokens = self.count(input_text)
        output_tokens = self.count(output_text)
        total = input_tokens + output_tokens

        self.calls.append(
            {
                "model": model,
                "input": input_tokens,
                "output": output_tokens,
                "total": total,
            }
        )
        # Ventana acotada para no crecer indefinidamente en un proceso largo
        self.calls = self.calls[-100:]
        self.total_tokens += total

        logging.getLogger(__name__).debug(
            f"Tokens {model}: {input_tokens}→{output_tokens}"
        )
        return total

    def get_summary(self) -> dict:
        return {
            "total_tokens": self.total_tokens,
            "total_calls": len(self.calls),
            "calls": self.calls[-5:] if settings.debug else [],
        }

    def reset(self):
        self.total_tokens = 0
        self.calls = []


token_counter = TokenCounter()
