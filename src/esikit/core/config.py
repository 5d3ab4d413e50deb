"""Configuration models used by the ESI processor.

DialectProfile

`minimal`
: Include, comment and remove only. Accepts the `fastly` alias.

`extended`
: Adds conditionals, error handling, variables, inline fragments and comment
  blocks. Accepts the `w3c` alias.

`extended-with-extensions`
: Adds assignment, expression evaluation, built-in functions, dictionary
  lookups, debug output and the geo/client variables. Accepts the `akamai`
  alias.

`development`
: Same capabilities as `extended-with-extensions`.

CacheConfig

`enabled` (`bool`)
: Keep fetched fragments in the shared in-memory cache.

`ttl` (`int`)
: Lifetime of a cached fragment in seconds.

ProcessorConfig

`profile` (`DialectProfile`)
: Dialect selected for the processor lifetime.

`debug` (`bool`)
: Emit debug logs, debug elements and inline include error markers.

`max_includes` (`int`)
: Number of include elements handled per request.

`max_depth` (`int`)
: Deepest nesting level accepted for recursive fragment processing.

`base_url` (`str | None`)
: Base URL used for relative includes when the request does not supply one.

`fetch_timeout` (`float`)
: Client-level timeout applied to every fragment request, in seconds.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError


class DialectProfile(str, Enum):
    """Named feature tiers controlling which ESI elements are recognised."""

    MINIMAL = "minimal"
    EXTENDED = "extended"
    EXTENDED_WITH_EXTENSIONS = "extended-with-extensions"
    DEVELOPMENT = "development"

    @classmethod
    def parse(cls, value: str | DialectProfile) -> DialectProfile:
        """Return the profile matching a canonical name or a vendor alias."""
        if isinstance(value, DialectProfile):
            return value
        candidate = str(value).strip().lower()
        candidate = _PROFILE_ALIASES.get(candidate, candidate)
        try:
            return cls(candidate)
        except ValueError as exc:
            choices = ", ".join(sorted({*(p.value for p in cls), *_PROFILE_ALIASES}))
            raise ConfigurationError(
                f"Unknown ESI dialect '{value}'. Expected one of: {choices}."
            ) from exc


_PROFILE_ALIASES: dict[str, str] = {
    "fastly": "minimal",
    "w3c": "extended",
    "akamai": "extended-with-extensions",
}


class CapabilitySet(BaseModel):
    """Feature flags derived once from a dialect profile."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    include: bool = False
    comment: bool = False
    remove: bool = False
    inline: bool = False
    choose: bool = False
    try_: bool = Field(default=False, alias="try")
    vars: bool = False
    variables: bool = False
    expressions: bool = False
    comment_blocks: bool = False
    assign: bool = False
    eval: bool = False
    function: bool = False
    dictionary: bool = False
    debug: bool = False
    geo_variables: bool = False
    extended_variables: bool = False

    @property
    def extensions(self) -> bool:
        """Return True when any extension element is enabled."""
        return self.assign or self.eval or self.function or self.dictionary or self.debug

    def allows(self, capability: str | None) -> bool:
        """Check a capability by field name; ``None`` is always allowed."""
        if capability is None:
            return True
        if capability == "try":
            capability = "try_"
        return bool(getattr(self, capability, False))

    @classmethod
    def for_profile(cls, profile: DialectProfile | str) -> CapabilitySet:
        """Derive the capability set of a dialect profile."""
        resolved = DialectProfile.parse(profile)
        minimal = {"include": True, "comment": True, "remove": True}
        if resolved is DialectProfile.MINIMAL:
            return cls(**minimal)

        extended = {
            **minimal,
            "inline": True,
            "choose": True,
            "try_": True,
            "vars": True,
            "variables": True,
            "expressions": True,
            "comment_blocks": True,
        }
        if resolved is DialectProfile.EXTENDED:
            return cls(**extended)

        return cls(
            **extended,
            assign=True,
            eval=True,
            function=True,
            dictionary=True,
            debug=True,
            geo_variables=True,
            extended_variables=True,
        )


class CacheConfig(BaseModel):
    """Fragment cache settings."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    enabled: bool = True
    ttl: int = Field(default=300, ge=0)


class ProcessorConfig(BaseModel):
    """Settings fixed for the lifetime of a processor instance."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    profile: DialectProfile = DialectProfile.EXTENDED_WITH_EXTENSIONS
    debug: bool = False
    max_includes: int = Field(default=256, ge=0)
    max_depth: int = Field(default=5, ge=0)
    base_url: str | None = None
    cache: CacheConfig = Field(default_factory=CacheConfig)
    fetch_timeout: float = Field(default=30.0, gt=0)

    @field_validator("profile", mode="before")
    @classmethod
    def _parse_profile(cls, value: object) -> DialectProfile:
        if isinstance(value, (str, DialectProfile)):
            try:
                return DialectProfile.parse(value)
            except ConfigurationError as exc:
                raise ValueError(str(exc)) from exc
        raise ValueError("profile must be a string")

    @field_validator("base_url")
    @classmethod
    def _normalise_base_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None

    @property
    def capabilities(self) -> CapabilitySet:
        """Return the capability set derived from the configured profile."""
        return CapabilitySet.for_profile(self.profile)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ProcessorConfig:
        """Build a configuration from environment variables."""
        env = os.environ if environ is None else environ
        payload: dict[str, object] = {}
        cache: dict[str, object] = {}

        mapping: tuple[tuple[str, dict[str, object], str], ...] = (
            ("ESI_MODE", payload, "profile"),
            ("DEBUG", payload, "debug"),
            ("MAX_INCLUDES", payload, "max_includes"),
            ("MAX_DEPTH", payload, "max_depth"),
            ("ESI_BASE_URL", payload, "base_url"),
            ("REQUEST_TIMEOUT", payload, "fetch_timeout"),
            ("CACHE_ENABLED", cache, "enabled"),
            ("CACHE_TTL", cache, "ttl"),
        )
        for variable, target, field_name in mapping:
            raw = env.get(variable)
            if raw is None or not raw.strip():
                continue
            target[field_name] = raw.strip()

        if cache:
            payload["cache"] = cache
        try:
            return cls.model_validate(payload)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                for error in exc.errors()
            )
            raise ConfigurationError(f"Invalid ESI configuration: {problems}") from exc


__all__ = [
    "CacheConfig",
    "CapabilitySet",
    "DialectProfile",
    "ProcessorConfig",
]
