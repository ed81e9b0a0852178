import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import openai

from errors import ModelInvocationError
from prompts import SYSTEM_PROMPT
from settings import Settings

logger = logging.getLogger("StackMorph.llm")

# Client errors that a later attempt can still succeed on.
RETRYABLE_CLIENT_STATUSES = {408, 409, 429}


def _is_retryable(status_code: int) -> bool:
    return not (400 <= status_code < 500) or status_code in RETRYABLE_CLIENT_STATUSES


class ModelClient:
    """Plain text-in / text-out wrapper around the chat completions API."""

    def __init__(self, settings: Settings, client=None):
        self.model = settings.model
        self.max_retries = settings.max_retries
        self.temperature = settings.temperature
        self.max_tokens = settings.max_tokens
        self.dump_dir: Optional[Path] = settings.log_dir if settings.save_raw_responses else None
        self._client = client or self._create_client(settings)

    @staticmethod
    def _create_client(settings: Settings):
        api_key = settings.require_api_key()
        if settings.uses_azure:
            logger.info("Azure OpenAI client initialized")
            return openai.AsyncAzureOpenAI(
                api_key=api_key,
                azure_endpoint=settings.azure_endpoint,
                api_version=settings.azure_api_version,
            )
        logger.info("OpenAI client initialized")
        return openai.AsyncOpenAI(api_key=api_key)

    async def complete(self, prompt: str) -> str:
        logger.info(f"Calling model {self.model} ({len(prompt)} chars)")
        last_error = None
        for attempt in range(self.max_retries + 1):
            try:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=[
                        {"role": "system", "content": SYSTEM_PROMPT},
                        {"role": "user", "content": prompt},
                    ],
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )
                content = response.choices[0].message.content if response.choices else None
            except Exception as e:
                if isinstance(e, openai.APIStatusError) and not _is_retryable(e.status_code):
                    logger.error(f"Model API rejected the request with status {e.status_code}: {e}")
                    raise ModelInvocationError(f"Model request failed: {e}")
                last_error = str(e)
                logger.error(f"Error in model API call (attempt {attempt + 1}/{self.max_retries + 1}): {e}")
                continue
            if content and content.strip():
                logger.debug(f"Received response (length: {len(content)})")
                self._dump(content, attempt)
                return content
            last_error = "Empty response from model"
            logger.warning(f"Empty response (attempt {attempt + 1}/{self.max_retries + 1})")
        raise ModelInvocationError(f"Model request failed: {last_error}")

    def _dump(self, content: str, attempt: int) -> None:
        if self.dump_dir is None:
            return
        self.dump_dir.mkdir(parents=True, exist_ok=True)
        debug_file = self.dump_dir / f"api_response_{datetime.now():%Y%m%d_%H%M%S_%f}_{attempt + 1}.txt"
        debug_file.write_text(content, encoding="utf-8")
        logger.debug(f"Saved raw API response to {debug_file}")
