"""
Hosted text generation through the Hugging Face OpenAI-compatible router.

The client is built once at startup (see main.lifespan) and injected; provider
failures are mapped to InferenceError with a transient flag so callers can tell
retryable outages from configuration problems.
"""
import logging
import time

from openai import (
    APIConnectionError,
    APIStatusError,
    APITimeoutError,
    AuthenticationError,
    BadRequestError,
    InternalServerError,
    OpenAI,
    RateLimitError,
)

from medlens.core.config import settings
from medlens.core.errors import InferenceError

logger = logging.getLogger(__name__)

# timeouts, dropped connections, throttling and provider 5xx
TRANSIENT_EXCEPTIONS = (APITimeoutError, APIConnectionError, RateLimitError, InternalServerError)

EXCERPT_MAX_CHARS = 4000

PROMPT_TEMPLATE = (
    "Analyze this medical document: {file_name} ({size} bytes, {ext} format). "
    "Please provide a comprehensive medical analysis including: "
    "1. Document type and purpose, "
    "2. Key medical findings or observations, "
    "3. Potential diagnoses or conditions mentioned, "
    "4. Recommendations for further action, "
    "5. Any urgent medical concerns that need attention. "
    "Format your response in a clear, structured manner suitable for medical professionals."
)


def build_prompt(file_name: str, size: int, ext: str, excerpt: str | None = None) -> str:
    """Metadata prompt; an extracted text excerpt is appended when one is available."""
    prompt = PROMPT_TEMPLATE.format(file_name=file_name, size=size, ext=(ext or "unknown").lstrip(".") or "unknown")
    if excerpt and excerpt.strip():
        text = excerpt.strip()
        if len(text) > EXCERPT_MAX_CHARS:
            text = text[:EXCERPT_MAX_CHARS] + "\n[...truncated]"
        prompt += "\n\nDocument text:\n" + text
    return prompt


def _map_error(exc: Exception) -> InferenceError:
    if isinstance(exc, TRANSIENT_EXCEPTIONS):
        if isinstance(exc, APITimeoutError):
            return InferenceError("Inference request timed out", transient=True)
        if isinstance(exc, RateLimitError):
            return InferenceError("Inference provider is rate limiting requests", transient=True)
        if isinstance(exc, APIConnectionError):
            return InferenceError("Inference provider unreachable", transient=True)
        return InferenceError("Inference provider error", transient=True)
    if isinstance(exc, AuthenticationError):
        return InferenceError("Inference provider rejected the API key (check HF_API_KEY)")
    if isinstance(exc, BadRequestError):
        return InferenceError("Inference request rejected by the provider")
    if isinstance(exc, APIStatusError):
        return InferenceError(f"Inference provider returned HTTP {exc.status_code}")
    return InferenceError("Unexpected inference error")


class InferenceClient:
    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        timeout: float = 60.0,
        client: OpenAI | None = None,
    ):
        self.model = model
        self._client = client
        if self._client is None and api_key:
            self._client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout, max_retries=0)

    @classmethod
    def from_settings(cls) -> "InferenceClient":
        return cls(
            api_key=settings.hf_api_key,
            base_url=settings.hf_base_url,
            model=settings.hf_model,
            timeout=settings.inference_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return self._client is not None

    def generate(self, prompt: str) -> str:
        if self._client is None:
            raise InferenceError("Inference is not configured (HF_API_KEY missing)")
        try:
            response = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
            )
        except Exception as e:
            logger.exception("Inference call failed: %s", type(e).__name__)
            raise _map_error(e) from e
        content = (response.choices[0].message.content or "").strip() if response.choices else ""
        if not content:
            raise InferenceError("Inference provider returned an empty reply", transient=True)
        return content

    def ping(self) -> tuple[bool, float, str | None]:
        """(ok, latency_ms, error) with a one-token completion, for the health endpoint."""
        t0 = time.perf_counter()
        if self._client is None:
            return (False, 0.0, "not configured")
        try:
            self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=1,
            )
        except Exception as e:
            latency_ms = round((time.perf_counter() - t0) * 1000, 2)
            return (False, latency_ms, str(e).strip()[:500] or type(e).__name__)
        return (True, round((time.perf_counter() - t0) * 1000, 2), None)
