from typing import List, Literal, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment.

    Built once at process start (see ``src/config/settings.py`` bottom) and
    handed to ``build_container``. Engine components receive the values they
    need through their constructors and never read the environment.
    """

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8001
    debug: bool = False

    # CORS - comma-separated list, empty = allow all in debug mode only
    cors_allowed_origins: str = ""

    def get_cors_origins(self) -> List[str]:
        """
        Get list of allowed CORS origins.

        Returns:
            List of allowed origins. If empty and debug=True, allows all origins.
            If empty and debug=False, returns empty list (no CORS allowed).
        """
        if not self.cors_allowed_origins:
            if self.debug:
                return ["*"]
            return []
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]

    # LLM Provider Selection
    llm_provider: Literal["gemini", "openai"] = "gemini"
    # When True the service refuses to start without a configured provider
    # instead of running on the rule-based fallbacks alone.
    require_llm: bool = False

    # Gemini Configuration (PRIMARY)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash"
    gemini_temperature: float = 0.3
    gemini_max_tokens: int = 4096

    # OpenAI Configuration (FALLBACK)
    # Reasoning models spend max_tokens on reasoning before any output.
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-5-nano"
    openai_temperature: float = 0.3
    openai_max_tokens: int = 16384

    # Timeouts
    llm_timeout_seconds: int = 30

    # Postmark
    postmark_server_token: Optional[str] = None
    postmark_api_url: str = "https://api.postmarkapp.com/email"
    postmark_timeout_seconds: int = 15

    # Decision thresholds
    auto_counter_confidence: float = Field(0.8, ge=0.0, le=1.0)
    opt_out_confidence: float = Field(0.7, ge=0.0, le=1.0)
    review_confidence: float = Field(0.85, ge=0.0, le=1.0)
    annual_discount_rate: float = 0.05

    # Logging
    log_level: str = "INFO"

    # Rate Limiting (per-IP, per-minute)
    rate_limit_inbound: str = "60/minute"
    rate_limit_analyze: str = "100/minute"

    model_config = ConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
