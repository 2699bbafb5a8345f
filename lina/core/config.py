import os
from dataclasses import dataclass, field, replace
from typing import List

from lina.core.errors import ConfigurationError


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.0-flash",
}


@dataclass(frozen=True)
class Settings:
    # Auth / tokens
    jwt_secret: str = ""
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60

    # Quota / subscription
    free_question_limit: int = 5
    subscription_days: int = 30
    auto_provision_unknown: bool = False
    block_disposable_emails: bool = True
    disposable_email_blocklist: str = ""  # empty: bundled list

    # Ledger storage
    ledger_backend: str = "memory"  # "memory" or "sql"
    database_url: str = "sqlite:///./lina.db"

    # Model provider
    llm_provider: str = "openai"  # "openai" or "gemini"
    openai_api_key: str = ""
    gemini_api_key: str = ""
    model: str = DEFAULT_MODELS["openai"]
    max_message_chars: int = 4000

    # HTTP surface
    max_body_bytes: int = 1024 * 1024
    allowed_origins: List[str] = field(default_factory=lambda: ["*"])
    rate_limit_per_min: int = 60

    # Payments (Bold)
    payments_mode: str = "mock"  # "mock" or "bold"
    bold_api_key: str = ""
    bold_base_url: str = "https://integrations.api.bold.co"
    bold_webhook_secret: str = ""
    subscription_price: int = 19900
    subscription_currency: str = "COP"
    frontend_url: str = "http://localhost:3000"

    @classmethod
    def from_env(cls) -> "Settings":
        provider = os.getenv("LLM_PROVIDER", "openai").strip().lower()
        origins = os.getenv("ALLOWED_ORIGINS", "*")
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", "").strip(),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=_env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60),
            free_question_limit=_env_int("FREE_QUESTION_LIMIT", 5),
            subscription_days=_env_int("SUBSCRIPTION_DAYS", 30),
            auto_provision_unknown=_env_bool("AUTO_PROVISION_UNKNOWN", False),
            block_disposable_emails=_env_bool("BLOCK_DISPOSABLE_EMAILS", True),
            disposable_email_blocklist=os.getenv("DISPOSABLE_EMAIL_BLOCKLIST", "").strip(),
            ledger_backend=os.getenv("LEDGER_BACKEND", "memory").strip().lower(),
            database_url=os.getenv("DATABASE_URL", "sqlite:///./lina.db"),
            llm_provider=provider,
            openai_api_key=os.getenv("OPENAI_API_KEY", "").strip(),
            gemini_api_key=os.getenv("GEMINI_API_KEY", "").strip(),
            model=os.getenv("MODEL") or DEFAULT_MODELS.get(provider, DEFAULT_MODELS["openai"]),
            max_message_chars=_env_int("MAX_MESSAGE_CHARS", 4000),
            max_body_bytes=_env_int("MAX_BODY_BYTES", 1024 * 1024),
            allowed_origins=[o.strip() for o in origins.split(",") if o.strip()],
            rate_limit_per_min=_env_int("RATE_LIMIT_PER_MIN", 60),
            payments_mode=os.getenv("PAYMENTS_MODE", "mock").strip().lower(),
            # Strip whitespace to avoid invisible copy/paste errors.
            bold_api_key=os.getenv("BOLD_API_KEY", "").strip(),
            bold_base_url=os.getenv("BOLD_BASE_URL", "https://integrations.api.bold.co").rstrip("/"),
            bold_webhook_secret=os.getenv("BOLD_WEBHOOK_SECRET", "").strip(),
            subscription_price=_env_int("SUBSCRIPTION_PRICE", 19900),
            subscription_currency=os.getenv("SUBSCRIPTION_CURRENCY", "COP").upper(),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000").rstrip("/"),
        )

    def with_overrides(self, **changes) -> "Settings":
        return replace(self, **changes)

    @property
    def provider_api_key(self) -> str:
        if self.llm_provider == "gemini":
            return self.gemini_api_key
        return self.openai_api_key

    def validate(self) -> None:
        """Raise ConfigurationError if the process must not serve traffic."""
        missing = []
        if not self.jwt_secret:
            missing.append("JWT_SECRET")
        if self.llm_provider not in DEFAULT_MODELS:
            raise ConfigurationError(
                f"LLM_PROVIDER must be one of {sorted(DEFAULT_MODELS)}, got {self.llm_provider!r}"
            )
        if not self.provider_api_key:
            missing.append("GEMINI_API_KEY" if self.llm_provider == "gemini" else "OPENAI_API_KEY")
        if self.ledger_backend not in ("memory", "sql"):
            raise ConfigurationError(
                f"LEDGER_BACKEND must be 'memory' or 'sql', got {self.ledger_backend!r}"
            )
        if self.payments_mode not in ("mock", "bold"):
            raise ConfigurationError(
                f"PAYMENTS_MODE must be 'mock' or 'bold', got {self.payments_mode!r}"
            )
        if self.payments_mode == "bold":
            if not self.bold_api_key:
                missing.append("BOLD_API_KEY")
            # Unsigned webhooks would let anyone activate a subscription
            if not self.bold_webhook_secret:
                missing.append("BOLD_WEBHOOK_SECRET")
        if self.free_question_limit < 0:
            raise ConfigurationError("FREE_QUESTION_LIMIT must not be negative")
        if missing:
            raise ConfigurationError(
                "Missing required configuration: " + ", ".join(missing)
            )
