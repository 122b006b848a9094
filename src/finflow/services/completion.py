"""Client for an OpenRouter-compatible chat-completion gateway."""

from typing import Optional, Sequence

import httpx
import structlog
from pydantic import BaseModel

from ..domain.errors import ConfigurationError, UpstreamError
from ..domain.models import CompletionMessage

logger = structlog.get_logger()

DEFAULT_MODEL = "meta-llama/llama-3.1-8b-instruct:free"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class GatewayConfig(BaseModel):
    """Credentials and model for gateway calls."""

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    referer: str = "https://finflow-app.com"
    title: str = "FinFlow"

    def merged(self, api_key: Optional[str] = None, model: Optional[str] = None) -> "GatewayConfig":
        """Return a copy with any non-empty per-request overrides applied."""
        overrides = {}
        if api_key and api_key.strip():
            overrides["api_key"] = api_key.strip()
        if model and model.strip():
            overrides["model"] = model.strip()
        return self.model_copy(update=overrides)


class KeyCheck(BaseModel):
    """Outcome of checking a gateway key."""

    valid: bool
    error: Optional[str] = None


class CompletionClient:
    """Single-attempt completion calls. No retries, transport default timeout."""

    def __init__(self, config: GatewayConfig, client: Optional[httpx.AsyncClient] = None):
        self.config = config
        self._client = client or httpx.AsyncClient()
        logger.info(
            "completion_client_init",
            model=config.model,
            base_url=config.base_url,
            has_default_key=bool(config.api_key),
        )

    def _headers(self, api_key: str) -> dict:
        return {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "HTTP-Referer": self.config.referer,
            "X-Title": self.config.title,
        }

    async def _post(self, config: GatewayConfig, payload: dict) -> httpx.Response:
        return await self._client.post(
            f"{config.base_url.rstrip('/')}/chat/completions",
            headers=self._headers(config.api_key),
            json=payload,
        )

    async def complete(
        self,
        messages: Sequence[CompletionMessage],
        api_key: Optional[str] = None,
        model: Optional[str] = None,
    ) -> str:
        """Send ``messages`` and return the first choice's text."""
        config = self.config.merged(api_key=api_key, model=model)
        if not config.api_key:
            logger.error("gateway_key_missing")
            raise ConfigurationError()
        if not config.api_key.isascii():
            logger.error("gateway_key_unusable")
            raise ConfigurationError("The API key contains invalid characters. Please check it in Settings.")

        payload = {
            "model": config.model,
            "messages": [m.model_dump() for m in messages],
        }
        try:
            response = await self._post(config, payload)
        except httpx.HTTPError as e:
            logger.error("gateway_transport_error", model=config.model, error=str(e))
            raise UpstreamError() from e

        if not response.is_success:
            logger.error(
                "gateway_error_response",
                model=config.model,
                status_code=response.status_code,
                body=response.text,
            )
            raise UpstreamError()

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error("gateway_malformed_response", model=config.model, error=str(e))
            raise UpstreamError() from e
        if not isinstance(content, str):
            logger.error("gateway_malformed_response", model=config.model, error="content is not text")
            raise UpstreamError()

        logger.info("gateway_completion", model=config.model, reply_length=len(content))
        return content

    async def verify_key(self, api_key: str, model: Optional[str] = None) -> KeyCheck:
        """Check ``api_key`` with a tiny request, reporting rather than raising."""
        if not api_key or not api_key.strip():
            return KeyCheck(valid=False, error="Please enter an API key first")

        config = self.config.merged(api_key=api_key, model=model)
        if not config.api_key.isascii():
            return KeyCheck(valid=False, error="Invalid key")

        payload = {
            "model": config.model,
            "messages": [{"role": "user", "content": "Hello!"}],
            "max_tokens": 10,
        }
        try:
            response = await self._post(config, payload)
        except httpx.HTTPError as e:
            logger.warning("gateway_key_check_transport_error", error=str(e))
            return KeyCheck(valid=False, error="Connection error. Please try again.")

        if response.is_success:
            return KeyCheck(valid=True)

        try:
            error = response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            error = "Invalid key"
        logger.info("gateway_key_rejected", status_code=response.status_code)
        return KeyCheck(valid=False, error=error)

    async def close(self) -> None:
        await self._client.aclose()

