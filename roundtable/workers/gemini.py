"""Gemini worker using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from roundtable.errors import FatalWorkerError, TransientWorkerError
from roundtable.workers.base import PromptedWorker, error_from_status

logger = logging.getLogger(__name__)


class GeminiWorker(PromptedWorker):
    """Google Gemini worker via google-genai SDK."""

    provider_tag = "google"

    def __init__(self, config: ModelConfig) -> None:
        super().__init__(config)
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise FatalWorkerError(f"Missing API key: {config.api_key_env}", provider=config.name)
        self._client = genai.Client(api_key=api_key)

    async def generate_raw_completion(self, prompt: str, system_prompt: str | None = None) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self._config.model,
                    contents=prompt,
                    config=genai_types.GenerateContentConfig(
                        max_output_tokens=self._config.max_tokens,
                        system_instruction=system_prompt,
                    ),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise TransientWorkerError(
                f"Request timed out after {self._config.timeout_sec}s", provider=self._config.name
            ) from exc
        except genai_errors.APIError as exc:
            raise error_from_status(self._config.name, exc.code, f"API call failed: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientWorkerError(f"Connection failed: {exc}", provider=self._config.name) from exc

        latency = time.monotonic() - start

        if not response.text:
            raise TransientWorkerError("Empty response text", provider=self._config.name)

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", self._config.name, latency, token_count)
        return response.text
