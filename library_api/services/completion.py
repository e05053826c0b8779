"""
Completion Service Client

Thin async client for an OpenAI-compatible chat-completions endpoint
(DeepSeek by default). One request per call, no retries.

Every way the call can go wrong (no API key, transport error, timeout,
non-2xx status, unexpected body) is reported as UpstreamUnavailable, so
callers only have one failure to handle.
"""

import logging

import httpx

from library_api.exceptions import UpstreamUnavailable

logger = logging.getLogger(__name__)


class CompletionClient:
    """Client for a chat-completions endpoint."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._model = model
        self._temperature = temperature
        self._client = httpx.AsyncClient(transport=transport)

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def complete(
        self,
        system: str,
        user: str,
        *,
        timeout: float,
        max_tokens: int,
    ) -> str:
        """
        Send one system + user exchange and return the reply text.

        Raises:
            UpstreamUnavailable: on any failure, including a missing API key
        """
        if not self.enabled:
            raise UpstreamUnavailable("Completion service is not configured")

        payload = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "temperature": self._temperature,
            "max_tokens": max_tokens,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            logger.info(f"Completion request: model={self._model}, max_tokens={max_tokens}")
            resp = await self._client.post(
                self._api_url, json=payload, headers=headers, timeout=timeout
            )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except httpx.TimeoutException as e:
            logger.warning(f"Completion request timed out after {timeout}s")
            raise UpstreamUnavailable("Completion service timed out") from e
        except httpx.HTTPStatusError as e:
            logger.warning(f"Completion service returned {e.response.status_code}")
            raise UpstreamUnavailable(
                f"Completion service returned {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Completion request failed: {e}")
            raise UpstreamUnavailable("Completion service unreachable") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning(f"Malformed completion response: {e}")
            raise UpstreamUnavailable("Malformed completion response") from e

        if not isinstance(content, str) or not content.strip():
            raise UpstreamUnavailable("Empty completion response")

        logger.info(f"Completion response: {len(content)} chars")
        return content

    async def aclose(self) -> None:
        await self._client.aclose()
