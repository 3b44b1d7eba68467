"""OpenAI-compatible scoring oracle adapter.

Sends one chat-completion request per message:
- POST {api_url}/chat/completions
- Authorization: Bearer <api_key>
Sampling is deterministic (temperature 0) and the reply is capped to a few
tokens because only an integer is expected back.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from core.config import OracleConfig
from core.errors import ClassificationError

LOGGER = logging.getLogger(__name__)


class OpenAICompatibleOracle:
    """OraclePort implementation for any /chat/completions endpoint."""

    def __init__(self, config: OracleConfig, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self._config = config
        self._endpoint = f"{config.api_url.rstrip('/')}/chat/completions"
        self._http = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    def build_payload(self, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        return {
            "model": self._config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": 0,
            "max_tokens": self._config.max_tokens,
        }

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        LOGGER.debug("Calling %s with model %s", self._endpoint, self._config.model)
        try:
            response = await self._http.post(
                self._endpoint,
                json=self.build_payload(system_prompt, user_prompt),
                headers={"Authorization": f"Bearer {self._config.api_key}"},
            )
        except httpx.TimeoutException as exc:
            raise ClassificationError(f"LLM request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ClassificationError(f"LLM request failed: {exc}") from exc

        if not response.is_success:
            raise ClassificationError(
                f"LLM request failed with status {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as exc:
            raise ClassificationError("LLM response was not valid JSON") from exc
        return _extract_content(data)

    async def aclose(self) -> None:
        await self._http.aclose()


def _extract_content(data: Any) -> str:
    """Return ``choices[0].message.content`` or an empty string."""

    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content.strip() if isinstance(content, str) else ""
