"""Configuration for ShipEngine clients."""

import dataclasses
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional, Dict, Any, Mapping, Union, TypedDict, TYPE_CHECKING

import httpx

from .errors import ErrorCode, ValidationError

if TYPE_CHECKING:
    from .events import ShipEngineEventListener

DEFAULT_BASE_URL = "https://api.shipengine.com/jsonrpc"
DEFAULT_PAGE_SIZE = 50
DEFAULT_RETRIES = 1
DEFAULT_TIMEOUT = timedelta(seconds=5)

TimeoutLike = Union[timedelta, int, float]


class ConfigOverrides(TypedDict, total=False):
    """Per-call settings. Omitted keys keep the base configuration's value."""

    api_key: str
    base_url: str
    page_size: int
    retries: int
    timeout: TimeoutLike
    event_listener: "ShipEngineEventListener"


@dataclass(frozen=True)
class ShipEngineConfig:
    """
    Immutable, always-valid settings bundle.

    Validation runs in ``__post_init__``, so both construction and ``merge``
    (which goes through ``dataclasses.replace``) reject invalid values.
    """

    api_key: Optional[str] = None
    base_url: str = DEFAULT_BASE_URL
    page_size: int = DEFAULT_PAGE_SIZE
    retries: int = DEFAULT_RETRIES
    timeout: TimeoutLike = DEFAULT_TIMEOUT
    event_listener: Optional["ShipEngineEventListener"] = None

    def __post_init__(self) -> None:
        if _is_seconds(self.timeout):
            object.__setattr__(self, "timeout", timedelta(seconds=self.timeout))
        validate(self)

    @property
    def timeout_seconds(self) -> float:
        """Per-attempt timeout in seconds."""
        return self.timeout.total_seconds()

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "ShipEngineConfig":
        """Build a config from a mapping, leaving ``None`` values at their defaults."""
        return cls(**_supplied(settings))

    def merge(self, overrides: Optional[Mapping[str, Any]] = None) -> "ShipEngineConfig":
        """
        Return a new config with ``overrides`` applied on top of this one.

        Keys whose value is ``None`` are treated as not supplied. The original
        instance is never modified.
        """
        changes = _supplied(overrides or {})
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        """Serialize settings, hiding all but the last 4 characters of the key."""
        api_key = self.api_key or ""
        if redact and api_key:
            api_key = redact_secret(api_key)
        return {
            "api_key": api_key,
            "base_url": self.base_url,
            "page_size": self.page_size,
            "retries": self.retries,
            "timeout": self.timeout_seconds,
            "event_listener": type(self.event_listener).__name__ if self.event_listener else None,
        }


def validate(config: ShipEngineConfig) -> ShipEngineConfig:
    """Check every field of ``config``, raising ``ValidationError`` on the first bad one."""
    if not isinstance(config.api_key, str) or not config.api_key:
        raise ValidationError(
            "A ShipEngine API key must be specified.",
            error_code=ErrorCode.FIELD_VALUE_REQUIRED,
        )

    if not _is_http_url(config.base_url):
        raise ValidationError("Base URL must be a valid URL.")

    if not _is_int(config.page_size) or config.page_size <= 0:
        raise ValidationError("Page size must be greater than zero.")

    if not _is_int(config.retries) or config.retries < 0:
        raise ValidationError("Retries must be zero or greater.")

    if not isinstance(config.timeout, timedelta) or config.timeout <= timedelta(0):
        raise ValidationError("Timeout must be greater than zero.")

    return config


def redact_secret(secret: str) -> str:
    """Mask a secret, keeping only its last 4 characters."""
    if len(secret) <= 4:
        return "***"
    return f"***{secret[-4:]}"


_MAX_SECONDS = timedelta.max.total_seconds()
_FIELD_NAMES = frozenset(f.name for f in dataclasses.fields(ShipEngineConfig))


def _supplied(settings: Mapping[str, Any]) -> Dict[str, Any]:
    """Known keys with a non-None value; unknown keys are rejected."""
    supplied: Dict[str, Any] = {}
    for key, value in settings.items():
        if key not in _FIELD_NAMES:
            raise ValidationError(f"Unknown configuration option: {key}.")
        if value is not None:
            supplied[key] = value
    return supplied


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_seconds(value: Any) -> bool:
    """Numbers that fit in a timedelta; anything else is left for validate() to reject."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    # False for NaN and infinities too
    return abs(value) < _MAX_SECONDS


def _is_http_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        url = httpx.URL(value)
    except httpx.InvalidURL:
        return False
    return url.scheme in ("http", "https") and bool(url.host)
