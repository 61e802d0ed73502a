"""
Async OpenAI API wrapper with retry logic and JSON response helpers.
"""

import json
import logging
from typing import Any, Dict, List, Optional
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
    before_sleep_log
)
from openai import (
    AsyncOpenAI,
    APIConnectionError,
    APIError,
    APITimeoutError,
    InternalServerError,
    RateLimitError,
)

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (APIConnectionError, RateLimitError, APITimeoutError, InternalServerError)


class OpenAIServiceError(Exception):
    """Custom exception for OpenAI service errors."""
    pass


def extract_json_from_response(response: str) -> Dict[str, Any]:
    """
    Extract a JSON object from a model reply, handling markdown code blocks
    and chatter around the object.

    Args:
        response: Raw response string from the model

    Returns:
        Parsed JSON as dictionary

    Raises:
        json.JSONDecodeError: If no JSON object can be recovered
    """
    if not response:
        raise json.JSONDecodeError("Empty response", "", 0)

    response = response.strip()

    try:
        return json.loads(response)
    except json.JSONDecodeError as e:
        original_error = e

    # ```json ... ``` or plain ``` ... ```
    if '```' in response:
        start = response.find('```') + 3
        end = response.find('```', start)
        if end != -1:
            json_str = response[start:end].strip()
            if json_str.lower().startswith('json'):
                json_str = json_str[4:].strip()
            try:
                return json.loads(json_str)
            except json.JSONDecodeError:
                pass

    start = response.find('{')
    end = response.rfind('}')
    if start != -1 and end > start:
        try:
            return json.loads(response[start:end + 1])
        except json.JSONDecodeError:
            pass

    raise original_error


class OpenAIWrapper:
    """
    Wrapper for async OpenAI chat completions with automatic retry and error handling.
    """

    retry_wait = wait_exponential(multiplier=1, min=2, max=10)

    def __init__(self, api_key: str, max_retries: int = 3, client: Optional[AsyncOpenAI] = None):
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        # The SDK's own retry loop is disabled so tenacity owns back-off.
        self.client = client or AsyncOpenAI(api_key=api_key, max_retries=0)
        self.max_retries = max_retries

    async def _create_completion(self, request_kwargs: Dict[str, Any]) -> str:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self.retry_wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                response = await self.client.chat.completions.create(**request_kwargs)
        return (response.choices[0].message.content or "").strip()

    async def chat_completion(
        self,
        messages: List[Dict[str, str]],
        model: str = "gpt-4o-mini",
        temperature: float = 0.1,
        max_completion_tokens: Optional[int] = 1000,
        timeout: float = 30.0,
        response_format: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Create a chat completion with automatic retry.

        Args:
            messages: List of message dictionaries with 'role' and 'content'
            model: OpenAI model to use
            temperature: Sampling temperature
            max_completion_tokens: Maximum completion tokens in response
            timeout: Request timeout in seconds
            response_format: Optional response format, e.g. {"type": "json_object"}

        Returns:
            Response content as string

        Raises:
            OpenAIServiceError: If the request fails after all retries
        """
        request_kwargs: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "timeout": timeout,
        }
        if max_completion_tokens is not None:
            request_kwargs["max_completion_tokens"] = max_completion_tokens
        if response_format is not None:
            request_kwargs["response_format"] = response_format

        try:
            return await self._create_completion(request_kwargs)

        except RateLimitError as e:
            logger.error(f"OpenAI rate limit exceeded: {e}")
            raise OpenAIServiceError(f"Rate limit exceeded: {e}")

        except APITimeoutError as e:
            logger.error(f"OpenAI API timeout: {e}")
            raise OpenAIServiceError(f"API timeout: {e}")

        except APIError as e:
            logger.error(f"OpenAI API error: {e}")
            raise OpenAIServiceError(f"API error: {e}")

    async def json_completion(
        self,
        messages: List[Dict[str, str]],
        **kwargs: Any,
    ) -> Dict[str, Any]:
        """
        Create a chat completion in JSON mode and parse the reply.

        Raises:
            OpenAIServiceError: If the request fails or the reply holds no JSON object
        """
        content = await self.chat_completion(
            messages,
            response_format={"type": "json_object"},
            **kwargs,
        )
        try:
            parsed = extract_json_from_response(content)
        except json.JSONDecodeError as e:
            logger.warning(f"OpenAI returned non-JSON response: {content[:200]!r}")
            raise OpenAIServiceError(f"Invalid JSON response: {e}")

        if not isinstance(parsed, dict):
            raise OpenAIServiceError(f"Expected a JSON object, got {type(parsed).__name__}")
        return parsed
