"""
Completion client abstraction layer.

Sends a finished prompt to a hosted text-completion service and returns
the answer text. Two providers are supported:
- Gemini API (Google's cloud API, the default)
- Ollama (local inference)

Failures are reported as one of four kinds: timeout, rate limiting,
service error, or an empty completion. Nothing here retries.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from django.conf import settings

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0  # seconds

DEFAULT_SAFETY_SETTINGS = [
    {"category": "HARM_CATEGORY_HARASSMENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_HATE_SPEECH", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_SEXUALLY_EXPLICIT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
    {"category": "HARM_CATEGORY_DANGEROUS_CONTENT", "threshold": "BLOCK_MEDIUM_AND_ABOVE"},
]


class CompletionError(Exception):
    """Base class for completion-service failures."""
    code = 'COMPLETION_ERROR'


class CompletionTimeout(CompletionError):
    """The service did not answer within the timeout."""
    code = 'LLM_TIMEOUT'


class RateLimited(CompletionError):
    """The service refused the request because of rate limits."""
    code = 'LLM_RATE_LIMITED'


class ServiceError(CompletionError):
    """The service failed, was unreachable, or answered in an unknown shape."""
    code = 'LLM_SERVICE_ERROR'


class EmptyCompletion(CompletionError):
    """The service answered without any candidate text."""
    code = 'LLM_EMPTY_COMPLETION'


@dataclass
class GenerationParams:
    """Generation parameters passed through to the provider unchanged."""
    temperature: float = 0.3
    max_output_tokens: int = 2048
    top_k: int = 40
    top_p: float = 0.95
    safety_settings: List[Dict[str, str]] = field(
        default_factory=lambda: [dict(s) for s in DEFAULT_SAFETY_SETTINGS]
    )

    @classmethod
    def from_settings(cls) -> 'GenerationParams':
        return cls(
            temperature=getattr(settings, 'LLM_TEMPERATURE', 0.3),
            max_output_tokens=getattr(settings, 'LLM_MAX_OUTPUT_TOKENS', 2048),
        )


@dataclass
class CompletionResponse:
    """Response from a completion call."""
    text: str
    model: str
    usage: Optional[Dict[str, int]] = None  # token usage if available


class BaseCompletionClient(ABC):
    """Abstract base class for completion clients."""

    def __init__(self, timeout: Optional[float] = None, transport: Optional[httpx.BaseTransport] = None):
        self.timeout = float(timeout if timeout is not None else getattr(settings, 'LLM_TIMEOUT', DEFAULT_TIMEOUT))
        self._transport = transport

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Return the model name being used."""
        pass

    @abstractmethod
    def complete(self, prompt: str, params: Optional[GenerationParams] = None) -> CompletionResponse:
        """
        Send a prompt and return the completion.

        Raises:
            CompletionTimeout, RateLimited, ServiceError, EmptyCompletion
        """
        pass

    def _post(self, url: str, payload: Dict[str, Any], headers: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """POST JSON and map transport failures onto the completion error kinds."""
        provider = type(self).__name__
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload, headers=headers)
                response.raise_for_status()
                return response.json()
        except httpx.TimeoutException:
            logger.error(f"{provider} request timed out after {self.timeout}s")
            raise CompletionTimeout(f"Completion service timed out after {self.timeout:g}s")
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"{provider} HTTP error: {status}")
            if status == 429:
                raise RateLimited("Completion service rate limit exceeded")
            raise ServiceError(f"Completion service error: {status} {_error_detail(e.response)}".rstrip())
        except httpx.RequestError as e:
            logger.error(f"{provider} connection error: {e}")
            raise ServiceError("Could not connect to completion service")
        except ValueError as e:
            logger.error(f"{provider} returned invalid JSON: {e}")
            raise ServiceError("Invalid response from completion service")


def _error_detail(response: httpx.Response) -> str:
    try:
        return response.json().get("error", {}).get("message", "")
    except (ValueError, AttributeError):
        return ""


class GeminiClient(BaseCompletionClient):
    """Completion client for Google Gemini API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.api_key = api_key if api_key is not None else getattr(settings, 'GEMINI_API_KEY', '')
        self.model = model or getattr(settings, 'GEMINI_MODEL', 'gemini-1.5-flash')
        self.base_url = base_url or getattr(
            settings, 'GEMINI_BASE_URL', 'https://generativelanguage.googleapis.com/v1beta'
        )

        if not self.api_key:
            raise ServiceError("GEMINI_API_KEY not configured")

    @property
    def model_name(self) -> str:
        return self.model

    def complete(self, prompt: str, params: Optional[GenerationParams] = None) -> CompletionResponse:
        params = params or GenerationParams()
        logger.info(f"Calling Gemini API: model={self.model}, temp={params.temperature}")

        request_body = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {
                "temperature": params.temperature,
                "topK": params.top_k,
                "topP": params.top_p,
                "maxOutputTokens": params.max_output_tokens,
            },
            "safetySettings": params.safety_settings,
        }

        data = self._post(
            f"{self.base_url}/models/{self.model}:generateContent",
            request_body,
            headers={"x-goog-api-key": self.api_key},
        )

        # Response format: {"candidates": [{"content": {"parts": [{"text": "..."}]}}]}
        candidates = data.get("candidates") or []
        if not candidates:
            reason = (data.get("promptFeedback") or {}).get("blockReason")
            if reason:
                raise EmptyCompletion(f"Request blocked by Gemini: {reason}")
            raise EmptyCompletion("No response generated from Gemini API")

        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text.strip():
            raise EmptyCompletion("Empty text in Gemini response")

        usage = None
        if "usageMetadata" in data:
            meta = data["usageMetadata"]
            usage = {
                "prompt_tokens": meta.get("promptTokenCount", 0),
                "completion_tokens": meta.get("candidatesTokenCount", 0),
                "total_tokens": meta.get("totalTokenCount", 0),
            }

        logger.info(f"Gemini response: {len(text)} chars")
        return CompletionResponse(text=text, model=self.model, usage=usage)


class OllamaClient(BaseCompletionClient):
    """Completion client for Ollama local inference."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        super().__init__(timeout=timeout, transport=transport)
        self.base_url = base_url or getattr(settings, 'OLLAMA_BASE_URL', 'http://ollama:11434')
        self.model = model or getattr(settings, 'OLLAMA_CHAT_MODEL', 'gemma:7b')

    @property
    def model_name(self) -> str:
        return self.model

    def complete(self, prompt: str, params: Optional[GenerationParams] = None) -> CompletionResponse:
        params = params or GenerationParams()
        logger.info(f"Calling Ollama generate: model={self.model}, temp={params.temperature}")

        data = self._post(
            f"{self.base_url}/api/generate",
            {
                "model": self.model,
                "prompt": prompt,
                "stream": False,
                "options": {
                    "temperature": params.temperature,
                    "top_k": params.top_k,
                    "top_p": params.top_p,
                    "num_predict": params.max_output_tokens,
                },
            },
        )

        text = data.get("response", "")
        if not text or not text.strip():
            raise EmptyCompletion("Empty response from Ollama")

        usage = None
        if "prompt_eval_count" in data or "eval_count" in data:
            usage = {
                "prompt_tokens": data.get("prompt_eval_count", 0),
                "completion_tokens": data.get("eval_count", 0),
            }

        logger.info(f"Ollama response: {len(text)} chars")
        return CompletionResponse(text=text, model=self.model, usage=usage)


def get_completion_client() -> BaseCompletionClient:
    """
    Build a completion client for the configured provider.

    Uses LLM_PROVIDER setting:
    - "gemini" (default): Google Gemini API
    - "ollama": Local Ollama inference

    A new client is built per call; clients hold only configuration.
    """
    provider = getattr(settings, 'LLM_PROVIDER', 'gemini').lower()

    if provider == 'ollama':
        return OllamaClient()
    if provider == 'gemini':
        return GeminiClient()
    raise ServiceError(f"Unknown LLM_PROVIDER: {provider}")
