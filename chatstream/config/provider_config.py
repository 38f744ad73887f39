"""Provider configuration: base URL, model listing and auth capabilities."""

from __future__ import annotations

from typing import Any, ClassVar

import httpx
from pydantic import BaseModel, Field, PrivateAttr

from chatstream.config.settings import settings
from chatstream.core.errors import ConfigurationError
from chatstream.util.logger import logger
from chatstream.util.masking import mask_for_log, mask_url_query


class BearerAuth:
    """Capability: the request carries ``Authorization: Bearer <token>``."""

    def bearer_token(self) -> str:
        raise NotImplementedError


class QueryParameterAuth:
    """Capability: the request URL carries ``?<name>=<key>``."""

    def query_parameter(self) -> tuple[str, str]:
        raise NotImplementedError


class ProviderConfig(BaseModel):
    """Base URL builder plus the list of selectable model names."""

    provider_name: ClassVar[str] = "generic"
    models_path: ClassVar[tuple[str, ...]] = ()

    base_url: str
    models: list[str] = Field(default_factory=list)

    _warned_no_auth: bool = PrivateAttr(default=False)

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        if issubclass(cls, BearerAuth) and issubclass(cls, QueryParameterAuth):
            raise TypeError(f"{cls.__name__} declares more than one auth capability")

    def get_url(self, *path: str) -> str:
        base = self.base_url.strip().rstrip("/")
        segments = [segment.strip("/") for segment in path if segment and segment.strip("/")]
        if not segments:
            return base
        return f"{base}/{'/'.join(segments)}"

    def full_url(self, url: str, params: dict[str, str] | None = None) -> str:
        """Merge extra query params and query-parameter auth into *url*."""
        merged: dict[str, str] = dict(params or {})
        if isinstance(self, QueryParameterAuth):
            name, key = self.query_parameter()
            if not key:
                logger.error("configuration_error missing api key provider=%s", self.provider_name)
            merged[name] = key
        if not merged:
            return url
        return str(httpx.URL(url).copy_merge_params(merged))

    def loggable_url(self, url: str) -> str:
        if isinstance(self, QueryParameterAuth):
            return mask_url_query(url, self.query_parameter()[0])
        return url

    def auth_headers(self) -> dict[str, str]:
        if isinstance(self, BearerAuth):
            token = self.bearer_token()
            if not token:
                logger.error(
                    "configuration_error missing api key provider=%s, sending unauthenticated request",
                    self.provider_name,
                )
                return {}
            logger.debug("bearer auth provider=%s token=%s", self.provider_name, mask_for_log(token))
            return {"Authorization": f"Bearer {token}"}
        if not isinstance(self, QueryParameterAuth) and not self._warned_no_auth:
            self._warned_no_auth = True
            logger.warning("provider=%s has no auth capability configured", self.provider_name)
        return {}

    def _extract_models(self, payload: Any) -> list[str]:
        return []

    async def refresh_models(self, client: httpx.AsyncClient | None = None) -> list[str]:
        """Fetch the provider's model listing and replace ``models`` with it."""
        if not self.models_path:
            return list(self.models)
        url = self.full_url(self.get_url(*self.models_path))
        owns_client = client is None
        http = client or httpx.AsyncClient(timeout=settings.request_timeout_seconds)
        try:
            response = await http.get(url, headers=self.auth_headers())
            response.raise_for_status()
            names = self._extract_models(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("refresh models failed provider=%s error=%s", self.provider_name, exc)
            return list(self.models)
        finally:
            if owns_client:
                await http.aclose()
        self.models = sorted(set(names))
        logger.info("refreshed models provider=%s count=%d", self.provider_name, len(self.models))
        return list(self.models)


class OpenAIConfig(ProviderConfig, BearerAuth):
    provider_name: ClassVar[str] = "openai"
    models_path: ClassVar[tuple[str, ...]] = ("models",)

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""

    def bearer_token(self) -> str:
        return self.api_key.strip()

    def _extract_models(self, payload: Any) -> list[str]:
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            return []
        return [str(item["id"]) for item in data if isinstance(item, dict) and item.get("id")]


class OllamaConfig(ProviderConfig):
    provider_name: ClassVar[str] = "ollama"
    models_path: ClassVar[tuple[str, ...]] = ("api", "tags")

    base_url: str = "http://127.0.0.1:11434"

    def _extract_models(self, payload: Any) -> list[str]:
        data = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            return []
        return [str(item["name"]) for item in data if isinstance(item, dict) and item.get("name")]


class GeminiConfig(ProviderConfig, QueryParameterAuth):
    provider_name: ClassVar[str] = "gemini"
    models_path: ClassVar[tuple[str, ...]] = ("models",)

    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    api_key: str = ""
    query_parameter_name: str = "key"

    def query_parameter(self) -> tuple[str, str]:
        return self.query_parameter_name, self.api_key.strip()

    def _extract_models(self, payload: Any) -> list[str]:
        data = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            return []
        names = []
        for item in data:
            if not isinstance(item, dict) or not item.get("name"):
                continue
            names.append(str(item["name"]).removeprefix("models/"))
        return names


_CONFIG_TYPES: dict[str, type[ProviderConfig]] = {
    OpenAIConfig.provider_name: OpenAIConfig,
    OllamaConfig.provider_name: OllamaConfig,
    GeminiConfig.provider_name: GeminiConfig,
}


def build_provider_config(
    provider: str | None = None,
    *,
    base_url: str | None = None,
    api_key: str | None = None,
) -> ProviderConfig:
    """Build a provider config from explicit values, falling back to settings."""
    name = (provider or settings.provider).strip().lower()
    config_type = _CONFIG_TYPES.get(name)
    if config_type is None:
        raise ConfigurationError(f"unknown provider: {name}")
    kwargs: dict[str, Any] = {}
    resolved_base = base_url if base_url is not None else settings.base_url
    if resolved_base.strip():
        kwargs["base_url"] = resolved_base.strip()
    if "api_key" in config_type.model_fields:
        kwargs["api_key"] = api_key if api_key is not None else settings.api_key
    return config_type(**kwargs)
