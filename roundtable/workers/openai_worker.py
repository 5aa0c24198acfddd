"""OpenAI worker using openai SDK with native async."""

import asyncio
import logging
import os
import time

import openai
from openai import AsyncOpenAI

from config.config_loader import ModelConfig
from roundtable.errors import FatalWorkerError, TransientWorkerError
from roundtable.workers.base import PromptedWorker, error_from_status

logger = logging.getLogger(__name__)


class OpenAIWorker(PromptedWorker):
    """OpenAI worker via openai SDK. Also the base for OpenAI-compatible APIs."""

    provider_tag = "openai"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise FatalWorkerError(f"Missing API key: {config.api_key_env}", provider=config.name)
        self._client = self._make_client(api_key, config)

    def _make_client(self, api_key: str, config: ModelConfig) -> AsyncOpenAI:
        return AsyncOpenAI(api_key=api_key)

    async def generate_raw_completion(self, prompt: str, system_prompt: str | None = None) -> str:
        start = time.monotonic()
        messages = [{"role": "user", "content": prompt}]
        if system_prompt:
            messages.insert(0, {"role": "system", "content": system_prompt})
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=self._config.model,
                    messages=messages,
                    max_tokens=self._config.max_tokens,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransientWorkerError(
                f"Request timed out after {self._config.timeout_sec}s", provider=self._config.name
            ) from exc
        except openai.APIStatusError as exc:
            raise error_from_status(self._config.name, exc.status_code, f"API call failed: {exc}") from exc
        except openai.APIConnectionError as exc:
            raise TransientWorkerError(f"Connection failed: {exc}", provider=self._config.name) from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise TransientWorkerError("Empty response content", provider=self._config.name)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI-compatible %s: %.2fs, %s tokens", self._config.name, latency, token_count)
        return choice.message.content
