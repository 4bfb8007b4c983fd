from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from pushalarm.utils import url_base64_to_bytes

# ====================================
# SETTINGS
# ====================================


class ConfigError(RuntimeError):
    """Server configuration is missing or unusable; the server must not start."""


class Settings(BaseSettings):
    # Wczytujemy zmienne środowiskowe z pliku .env
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Contact for the push services, "mailto:..." or "https://..."
    VAPID_SUBJECT: str
    # URL-safe base64, as printed by generate_keys.py
    VAPID_PUBLIC_KEY: str
    VAPID_PRIVATE_KEY: str

    PUSH_INTERVAL_SECONDS: float = 1
    PUSH_TTL_SECONDS: int = 60
    # Per-request limit for one delivery to a push service
    PUSH_TIMEOUT_SECONDS: float = 10
    PUSH_MAX_CONCURRENCY: int = 50
    # Drop subscriptions the push service reports as gone (404/410)
    PRUNE_GONE_SUBSCRIPTIONS: bool = False

    REGISTER_RATE_LIMIT: str = "60/minute"

    @field_validator("VAPID_SUBJECT")
    @classmethod
    def _subject_is_uri(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith(("mailto:", "https://", "http://")):
            raise ValueError("VAPID_SUBJECT must be a mailto: or https:// URI")
        return value

    @field_validator("PUSH_INTERVAL_SECONDS", "PUSH_TIMEOUT_SECONDS")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value


class AgentSettings(BaseSettings):
    """Settings of the device-side background agent."""

    model_config = SettingsConfigDict(
        env_prefix="PUSHALARM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    SERVER_URL: str = "http://localhost:8000"
    STORE_PATH: Path = Path.home() / ".pushalarm" / "store.json"
    HTTP_TIMEOUT_SECONDS: float = 20.0


# Dependency: settings singleton

def get_settings() -> Settings:
    return Settings()


def get_agent_settings() -> AgentSettings:
    return AgentSettings()


# ====================================
# VAPID KEYS
# ====================================

def load_vapid_private_key(settings: Settings) -> ec.EllipticCurvePrivateKey:
    """
    Odtwarza klucz prywatny P-256 z surowego skalara (32 bajty, base64url).
    """
    raw = url_base64_to_bytes(settings.VAPID_PRIVATE_KEY.strip())
    if len(raw) != 32:
        raise ValueError(f"VAPID_PRIVATE_KEY must decode to 32 bytes, got {len(raw)}")
    return ec.derive_private_key(int.from_bytes(raw, "big"), ec.SECP256R1())


def check_vapid_keys(settings: Settings) -> None:
    """Raise ValueError unless the private key derives the configured public key."""
    private_key = load_vapid_private_key(settings)
    derived = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    if derived != url_base64_to_bytes(settings.VAPID_PUBLIC_KEY.strip()):
        raise ValueError("VAPID_PUBLIC_KEY does not match VAPID_PRIVATE_KEY")


def load_server_settings() -> Settings:
    """
    Wczytuje i weryfikuje konfigurację serwera przy starcie.
    Brak kluczy VAPID albo niespójna para kluczy to ConfigError.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        missing = sorted(
            str(err["loc"][0]) for err in e.errors() if err["type"] == "missing"
        )
        if missing:
            raise ConfigError(
                f"Missing required settings: {', '.join(missing)}. "
                "Run generate_keys.py to create a VAPID key pair."
            ) from e
        raise ConfigError(f"Invalid settings: {e}") from e

    try:
        check_vapid_keys(settings)
    except ValueError as e:
        raise ConfigError(f"Invalid VAPID key pair: {e}") from e
    return settings
