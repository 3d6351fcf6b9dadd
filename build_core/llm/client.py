"""
LLM API client - connection pooling, retry and timeout.

Speaks the OpenAI chat-completions wire format and also understands
Anthropic-style response bodies. ``call_model`` has the signature the
agent loop and swarm expect from their model-invocation collaborator.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ..config import LLMConfig
from ..errors import ModelCallError, ModelTimeoutError
from .models import LLMResponse
from .tokens import estimate_tokens

logger = logging.getLogger(__name__)


class LLMClient:
    """
    HTTP model client.

    One ``aiohttp.ClientSession`` is created lazily and reused. Use as an
    async context manager, or call ``close()`` when done.

    Example:
        async with LLMClient(LLMConfig.from_env()) as client:
            loop = AgentExecutionLoop(registry, client.call_model)
    """

    def __init__(self, config: Optional[LLMConfig] = None):
        self.config = config or LLMConfig()
        self.timeout = aiohttp.ClientTimeout(
            total=self.config.timeout_seconds,
            connect=self.config.connect_timeout_seconds,
        )
        self._session: Optional[aiohttp.ClientSession] = None
        self._cache: Dict[Tuple[str, str, str], LLMResponse] = {}

        if not self.config.api_key:
            logger.info(f"LLM_API_KEY not set; calling {self.config.api_url} without authorization")

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        """Reuse one session (connection pooling)."""
        if self._session is None or self._session.closed:
            connector = aiohttp.TCPConnector(limit=20, limit_per_host=10)
            self._session = aiohttp.ClientSession(connector=connector, timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    def clear_cache(self) -> None:
        self._cache.clear()

    async def call_model(
        self,
        system_prompt: str,
        user_prompt: str,
        agent_id: str,
        *,
        model: Optional[str] = None,
        cache: bool = False,
    ) -> LLMResponse:
        """
        Call the model with a system and a user message.

        Raises:
            ModelTimeoutError: If every attempt timed out
            ModelCallError: If every attempt failed otherwise
        """
        model_id = model or self.config.default_model
        cache_key = (model_id, system_prompt, user_prompt)
        if cache and cache_key in self._cache:
            logger.debug(f"Cache hit for {agent_id} on {model_id}")
            return self._cache[cache_key]

        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        data = await self._post(model_id, messages)
        response = self._parse_response(data, model_id, system_prompt + user_prompt)

        if cache:
            self._cache[cache_key] = response
        return response

    async def _post(self, model_id: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
        session = await self._get_session()
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        payload = {
            "model": model_id,
            "messages": messages,
            "max_tokens": self.config.max_tokens,
            "temperature": self.config.temperature,
            "stream": False,
        }

        last_error: Optional[str] = None
        last_status: Optional[int] = None
        timed_out = False

        for attempt in range(self.config.max_retries):
            try:
                async with session.post(self.config.api_url, headers=headers, json=payload) as response:
                    if response.status == 200:
                        return await response.json()

                    if response.status == 429:
                        retry_after = float(
                            response.headers.get("Retry-After", self.config.retry_delay * (attempt + 1))
                        )
                        logger.warning(f"Rate limited by {model_id}, waiting {retry_after}s")
                        await asyncio.sleep(retry_after)
                        continue

                    error_text = await response.text()
                    last_status = response.status
                    last_error = f"API Error ({response.status}): {error_text[:500]}"
                    logger.warning(f"{model_id}: {last_error}")
                    # client errors other than 429 will not improve on retry
                    if 400 <= response.status < 500:
                        break

            except asyncio.TimeoutError:
                timed_out = True
                last_error = "Timeout"
                logger.warning(f"{model_id}: timeout on attempt {attempt + 1}")
            except aiohttp.ClientError as e:
                timed_out = False
                last_error = str(e)
                logger.warning(f"{model_id}: error on attempt {attempt + 1}: {e}")

            if attempt < self.config.max_retries - 1:
                await asyncio.sleep(self.config.retry_delay * (attempt + 1))

        if timed_out:
            raise ModelTimeoutError(model_id, self.config.timeout_seconds)
        raise ModelCallError(last_error or "Unknown error", model=model_id, status_code=last_status)

    def _parse_response(self, data: Dict[str, Any], model_id: str, prompt_text: str) -> LLMResponse:
        content = ""
        if data.get("choices"):
            choice = data["choices"][0]
            if "message" in choice:
                content = choice["message"].get("content") or ""
            elif "text" in choice:
                content = choice["text"] or ""

        # Anthropic format
        if not content and "content" in data:
            if isinstance(data["content"], list):
                for item in data["content"]:
                    if item.get("type") == "text":
                        content = item.get("text", "")
                        break
            elif isinstance(data["content"], str):
                content = data["content"]

        usage = data.get("usage") or {}
        input_tokens = usage.get("prompt_tokens", usage.get("input_tokens"))
        output_tokens = usage.get("completion_tokens", usage.get("output_tokens"))

        if input_tokens is None:
            input_tokens = estimate_tokens(prompt_text)
        if output_tokens is None:
            output_tokens = estimate_tokens(content)

        logger.debug(
            f"{model_id} responded: {len(content)} chars, "
            f"{input_tokens}+{output_tokens} tokens, preview={json.dumps(content[:80])}"
        )

        return LLMResponse(
            content=content,
            work_units=int(input_tokens) + int(output_tokens),
            model=data.get("model") or model_id,
            input_tokens=int(input_tokens),
            output_tokens=int(output_tokens),
        )
