"""
siteforge settings.

Every environment variable the backend reads is declared here, once. Values
are captured at import; tests set TESTING=true (and usually AI_PROVIDER=mock)
before anything imports this module.
"""

from __future__ import annotations

import os

AI_PROVIDERS = ("anthropic", "openai", "mock")


def _env(name: str, default: str = "") -> str:
    return os.environ.get(name, default)


class Settings:
    """Environment-backed settings. Use the module-level `settings`."""

    # Postgres DSN; empty means in-memory storage
    DATABASE_URL: str = _env("DATABASE_URL")

    # Coach
    AI_PROVIDER: str = _env("AI_PROVIDER", "anthropic")
    COACH_MODEL: str = _env("COACH_MODEL", "claude-sonnet-4-20250514")
    AI_TIMEOUT_SECONDS: float = float(_env("AI_TIMEOUT_SECONDS", "60"))
    ANTHROPIC_API_KEY: str = _env("ANTHROPIC_API_KEY")
    OPENAI_API_KEY: str = _env("OPENAI_API_KEY")

    # Credits a new account opens with, in cents
    STARTER_CREDITS_CENTS: int = int(_env("STARTER_CREDITS_CENTS", "500"))

    # "Powered by" credit on sites that are not white-labelled
    BRAND_NAME: str = _env("BRAND_NAME", "siteforge")
    BRAND_URL: str = _env("BRAND_URL", "https://siteforge.dev")

    ENVIRONMENT: str = _env("ENVIRONMENT", "development")

    @property
    def provider_api_key(self) -> str:
        """Key for the configured AI_PROVIDER ("" for mock)."""
        return {"anthropic": self.ANTHROPIC_API_KEY, "openai": self.OPENAI_API_KEY}.get(self.AI_PROVIDER, "")

    def problems(self) -> list[str]:
        """Configuration errors that make a production deployment unusable."""
        found = []
        if not self.DATABASE_URL:
            found.append("DATABASE_URL is required")
        if self.AI_PROVIDER not in AI_PROVIDERS:
            found.append(f"AI_PROVIDER must be one of {', '.join(AI_PROVIDERS)} (got '{self.AI_PROVIDER}')")
        elif self.AI_PROVIDER != "mock" and not self.provider_api_key:
            found.append(f"an API key for AI_PROVIDER '{self.AI_PROVIDER}' is required")
        if self.AI_TIMEOUT_SECONDS <= 0:
            found.append("AI_TIMEOUT_SECONDS must be positive")
        if self.STARTER_CREDITS_CENTS < 0:
            found.append("STARTER_CREDITS_CENTS must not be negative")
        return found


settings = Settings()

if _env("TESTING").lower() != "true" and settings.ENVIRONMENT == "production":
    _problems = settings.problems()
    if _problems:
        raise RuntimeError("Invalid configuration: " + "; ".join(_problems))
