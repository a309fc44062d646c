"""
core/config.py -- Centralized daemon configuration via pydantic-settings.

All environment variable reads for doorlockd happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. ldap_uri -> LDAP_URI). Type coercion and validation are built in.

  @field_validator / @model_validator: Reject a misconfigured directory or a
      non-positive rotation interval at startup instead of on the first request.

Layer rule: core/ is the kernel. This module may not import from auth/, door/,
or notify/.
"""

import logging
from functools import lru_cache

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("doorlockd.config")

_LDAP_SCHEMES = ("ldap://", "ldaps://", "ldapi://")


class Settings(BaseSettings):
    """Daemon settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Token rotation
    # ------------------------------------------------------------------

    # Passive rotation interval. A token shown on the display stays usable for
    # at most two intervals (current, then one grace period as previous).
    token_timeout_seconds: float = 60.0

    # ------------------------------------------------------------------
    # Directory (LDAP simple bind)
    # ------------------------------------------------------------------

    ldap_uri: str = "ldaps://ldap.example.org"
    # Exactly one %s slot, replaced by the escaped username.
    bind_dn: str = "uid=%s,ou=people,dc=example,dc=org"
    ldap_version: int = 3
    ldap_timeout_seconds: float = 5.0

    # ------------------------------------------------------------------
    # Token display
    # ------------------------------------------------------------------

    web_prefix: str = "https://lock.example.org/?token="
    # Empty string disables QR output (tokens are still logged at DEBUG).
    qr_output_path: str = "/tmp/qr.png"

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @field_validator("bind_dn")
    @classmethod
    def validate_bind_dn(cls, value: str) -> str:
        if value.count("%s") != 1 or value.replace("%s", "").count("%") != 0:
            raise ValueError("BIND_DN must contain exactly one %s placeholder for the username.")
        return value

    @field_validator("ldap_uri")
    @classmethod
    def validate_ldap_uri(cls, value: str) -> str:
        if not value.lower().startswith(_LDAP_SCHEMES):
            raise ValueError(f"LDAP_URI must start with one of {', '.join(_LDAP_SCHEMES)}")
        return value

    @field_validator("ldap_version")
    @classmethod
    def validate_ldap_version(cls, value: int) -> int:
        if value not in (2, 3):
            raise ValueError("LDAP_VERSION must be 2 or 3.")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown LOG_LEVEL: {value}")
        return level

    @model_validator(mode="after")
    def validate_timeouts(self) -> "Settings":
        """Both intervals feed blocking waits; zero or negative values would spin or hang."""
        if self.token_timeout_seconds <= 0:
            raise ValueError("TOKEN_TIMEOUT_SECONDS must be greater than zero.")
        if self.ldap_timeout_seconds <= 0:
            raise ValueError("LDAP_TIMEOUT_SECONDS must be greater than zero.")
        if self.debug and self.log_level != "DEBUG":
            logger.warning("DEBUG=true: forcing LOG_LEVEL=DEBUG. Token values will appear in logs.")
            self.log_level = "DEBUG"
        return self


@lru_cache
def get_settings() -> Settings:
    """Return the daemon Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
