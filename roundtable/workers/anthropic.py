"""Anthropic Claude worker using anthropic SDK with native async."""

import asyncio
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from roundtable.errors import FatalWorkerError, TransientWorkerError
from roundtable.workers.base import PromptedWorker, error_from_status

logger = logging.getLogger(__name__)


class AnthropicWorker(PromptedWorker):
    """Anthropic Claude worker via anthropic SDK."""

    provider_tag = "anthropic"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise FatalWorkerError(f"Missing API key: {config.api_key_env}", provider=config.name)
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    async def generate_raw_completion(self, prompt: str, system_prompt: str | None = None) -> str:
        start = time.monotonic()
        kwargs = {"system": system_prompt} if system_prompt else {}
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._config.model,
                    max_tokens=self._config.max_tokens,
                    messages=[{"role": "user", "content": prompt}],
                    **kwargs,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransientWorkerError(
                f"Request timed out after {self._config.timeout_sec}s", provider=self._config.name
            ) from exc
        except anthropic_sdk.APIStatusError as exc:
            raise error_from_status(self._config.name, exc.status_code, f"API call failed: {exc}") from exc
        except anthropic_sdk.APIConnectionError as exc:
            raise TransientWorkerError(f"Connection failed: {exc}", provider=self._config.name) from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content if b.type == "text"] if response.content else []
        if not text_blocks:
            raise TransientWorkerError("No text blocks in response", provider=self._config.name)

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", self._config.name, latency, token_count)
        return "\n".join(text_blocks)
