"""Application configuration.

AppConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from perch.errors import ConfigurationError

ENVIRONMENTS = frozenset({"development", "test", "production"})

_TRUTHY = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(environment="production")
    """

    # "development" | "test" | "production"
    environment: str = "development"
    debug: bool = False

    # Query parameter that overrides the request method (e.g. ?_method=delete)
    method_override_param: str = "_method"

    # Content type used when a handler returns headers without one
    default_content_type: str = "text/html"

    # Suffixes tried, in order, when a static URL names no file directly
    static_try_suffixes: tuple[str, ...] = (".html", "/index.html")

    def __post_init__(self) -> None:
        if self.environment not in ENVIRONMENTS:
            allowed = ", ".join(sorted(ENVIRONMENTS))
            msg = f"Unknown environment {self.environment!r}. Expected one of: {allowed}"
            raise ConfigurationError(msg)

    @property
    def is_production(self) -> bool:
        """True when errors and diagnostics must not leak to clients."""
        return self.environment == "production"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AppConfig:
        """Build a config from ``PERCH_ENV`` and ``PERCH_DEBUG``.

        Unset variables fall back to the dataclass defaults.
        """
        env = os.environ if environ is None else environ
        return cls(
            environment=env.get("PERCH_ENV", "development").strip().lower(),
            debug=env.get("PERCH_DEBUG", "").strip().lower() in _TRUTHY,
        )
