"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .services.completion import DEFAULT_BASE_URL, DEFAULT_MODEL, GatewayConfig


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="FINFLOW_",
        env_file=".env",
        extra="ignore",
    )

    # Application
    app_name: str = "FinFlow API"
    api_prefix: str = Field(default="", description="Path prefix for every route")
    allowed_origins: str = Field(
        default="*",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="json",
        description="'json' for structured logging, 'console' for development"
    )

    # Backends
    identity_backend: Literal["memory", "supabase"] = "memory"
    store_backend: Literal["memory", "supabase"] = "memory"
    supabase_url: Optional[str] = None
    supabase_service_role_key: Optional[str] = None
    supabase_kv_table: str = "kv_store"

    # Completion gateway
    openrouter_api_key: Optional[str] = Field(
        default=None,
        description="Server-side default key, overridable per request"
    )
    openrouter_model: str = DEFAULT_MODEL
    openrouter_base_url: str = DEFAULT_BASE_URL
    openrouter_referer: str = "https://finflow-app.com"
    openrouter_title: str = "FinFlow"

    @property
    def cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def gateway_config(self) -> GatewayConfig:
        """Server defaults for the completion gateway"""
        return GatewayConfig(
            api_key=self.openrouter_api_key,
            model=self.openrouter_model,
            base_url=self.openrouter_base_url,
            referer=self.openrouter_referer,
            title=self.openrouter_title,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
