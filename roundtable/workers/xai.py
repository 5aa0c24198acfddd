"""xAI Grok worker using openai SDK (OpenAI-compatible API)."""

from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from roundtable.errors import FatalWorkerError
from roundtable.workers.openai_worker import OpenAIWorker


class XAIWorker(OpenAIWorker):
    """xAI Grok worker via OpenAI-compatible API."""

    provider_tag = "xai"

    def _make_client(self, api_key: str, config: ModelConfig) -> AsyncOpenAI:
        if not config.base_url:
            raise FatalWorkerError("base_url is required for xAI worker", provider=config.name)
        return AsyncOpenAI(api_key=api_key, base_url=config.base_url)
