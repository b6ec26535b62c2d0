from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping

_DEFAULT_ENV = "development"
_ENV_KEY = "FLASK_ENV"
_VALID_ENVS = {"development", "testing", "production"}
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

DEFAULT_ALLOWED_UNITS = ("kg", "l", "piece")
MAX_EXPIRY_HOURS = 168


@dataclass(frozen=True)
class EnvironmentInfo:
    name: str
    source: str
    raw_value: str


class EnvReader:
    def __init__(self, data: Mapping[str, str] | None = None):
        self._data = dict(os.environ if data is None else data)
        self.warnings: list[str] = []

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def _value(self, key: str) -> str | None:
        value = self._data.get(key)
        if value is None:
            return None
        stripped = value.strip()
        return stripped if stripped else None

    def str(self, key: str, default: str | None = None) -> str | None:
        value = self._value(key)
        return value if value is not None else default

    def int(self, key: str, default: int = 0) -> int:
        value = self._value(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError:
            self.warn(f"{key} expected integer but received {value!r}; falling back to {default}.")
            return default

    def float(self, key: str, default: float = 0.0) -> float:
        value = self._value(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            self.warn(f"{key} expected float but received {value!r}; falling back to {default}.")
            return default

    def bool(self, key: str, default: bool = False) -> bool:
        value = self._value(key)
        if value is None:
            return default
        lowered = value.lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
        self.warn(f"{key} expected boolean but received {value!r}; falling back to {default}.")
        return default

    def list(self, key: str, default: tuple[str, ...] = ()) -> tuple[str, ...]:
        value = self._value(key)
        if value is None:
            return tuple(default)
        items = tuple(part.strip() for part in value.replace(";", ",").split(",") if part.strip())
        if not items:
            self.warn(f"{key} did not contain any values; falling back to {list(default)}.")
            return tuple(default)
        return items


def _normalized_env(value: str | None, *, default: str = _DEFAULT_ENV) -> str:
    if not value:
        return default
    return value.strip().lower() or default


def _normalize_db_url(url: str | None) -> str | None:
    if not url:
        return None
    return 'postgresql://' + url[len('postgres://'):] if url.startswith('postgres://') else url


def _resolve_environment(reader: EnvReader) -> EnvironmentInfo:
    raw_value = reader.str(_ENV_KEY, _DEFAULT_ENV) or _DEFAULT_ENV
    normalized = _normalized_env(raw_value)
    if normalized not in _VALID_ENVS:
        raise RuntimeError(
            f"Invalid {_ENV_KEY}={raw_value!r}. Expected one of {sorted(_VALID_ENVS)}."
        )
    return EnvironmentInfo(name=normalized, source=_ENV_KEY, raw_value=raw_value)


env = EnvReader()
ENV_INFO = _resolve_environment(env)


class BaseConfig:
    FLASK_ENV = ENV_INFO.name
    SECRET_KEY = env.str('FLASK_SECRET_KEY', 'devkey-please-change-in-production')

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = env.str('LOG_LEVEL', 'WARNING') or 'WARNING'
    LOG_REDACT_PII = env.bool('LOG_REDACT_PII', True)

    # Composite engine policy; see EngineConfig.
    COMPOSITE_ALLOWED_UNITS = env.list('COMPOSITE_ALLOWED_UNITS', DEFAULT_ALLOWED_UNITS)
    COMPOSITE_MAX_BATCHES_PER_PREPARE = env.int('COMPOSITE_MAX_BATCHES_PER_PREPARE', 10)
    COMPOSITE_EXPIRING_SOON_RATIO = env.float('COMPOSITE_EXPIRING_SOON_RATIO', 0.8)
    COMPOSITE_DEFAULT_EXPIRY_HOURS = env.int('COMPOSITE_DEFAULT_EXPIRY_HOURS', 24)
    COMPOSITE_WHOLESALE_MARKUP = env.float('COMPOSITE_WHOLESALE_MARKUP', 1.3)
    COMPOSITE_RETAIL_MARKUP = env.float('COMPOSITE_RETAIL_MARKUP', 1.5)


class DevelopmentConfig(BaseConfig):
    ENV = 'development'
    DEBUG = True

    _db_url = _normalize_db_url(env.str('DATABASE_URL'))
    if _db_url:
        SQLALCHEMY_DATABASE_URI = _db_url
    else:
        instance_path = os.path.join(os.path.abspath(os.path.dirname(__file__)), '..', 'instance')
        SQLALCHEMY_DATABASE_URI = 'sqlite:///' + os.path.join(instance_path, 'prepline.db')

    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
        'pool_recycle': 3600,
    }


class TestingConfig(BaseConfig):
    ENV = 'testing'
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_pre_ping': True,
    }


class ProductionConfig(BaseConfig):
    ENV = 'production'
    DEBUG = False
    TESTING = False
    SQLALCHEMY_DATABASE_URI = _normalize_db_url(env.str('DATABASE_URL'))
    SQLALCHEMY_ENGINE_OPTIONS = {
        'pool_size': env.int('SQLALCHEMY_POOL_SIZE', 10),
        'max_overflow': env.int('SQLALCHEMY_MAX_OVERFLOW', 20),
        'pool_pre_ping': True,
        'pool_recycle': 1800,
        'pool_timeout': env.int('SQLALCHEMY_POOL_TIMEOUT', 30),
    }
    LOG_LEVEL = env.str('LOG_LEVEL', 'INFO') or 'INFO'


config_map = {
    'development': DevelopmentConfig,
    'testing': TestingConfig,
    'production': ProductionConfig,
}


def get_active_config_name() -> str:
    return ENV_INFO.name


def get_config():
    return config_map[get_active_config_name()]


Config = config_map[ENV_INFO.name]
ENV_DIAGNOSTICS = {
    'active': ENV_INFO.name,
    'source': ENV_INFO.source,
    'variables': {ENV_INFO.source: ENV_INFO.raw_value},
    'warnings': tuple(env.warnings),
}


@dataclass(frozen=True)
class EngineConfig:
    """Policy handed to the composite engines at construction time.

    ``allowed_units`` is the closed unit vocabulary, ``max_batches_per_prepare``
    caps a single prepare call and ``expiring_soon_ratio`` is the fraction of
    shelf life after which stock is reported as expiring soon.
    """

    allowed_units: tuple[str, ...] = DEFAULT_ALLOWED_UNITS
    max_batches_per_prepare: int = 10
    expiring_soon_ratio: float = 0.8
    default_expiry_hours: int = 24
    wholesale_markup: float = 1.3
    retail_markup: float = 1.5

    def __post_init__(self):
        units = tuple(str(unit).strip() for unit in self.allowed_units if str(unit).strip())
        if not units:
            raise ValueError("allowed_units must contain at least one unit")
        object.__setattr__(self, "allowed_units", units)
        if self.max_batches_per_prepare < 1:
            raise ValueError("max_batches_per_prepare must be at least 1")
        if not 0 < self.expiring_soon_ratio <= 1:
            raise ValueError("expiring_soon_ratio must be in (0, 1]")
        if not 1 <= self.default_expiry_hours <= MAX_EXPIRY_HOURS:
            raise ValueError(f"default_expiry_hours must be in [1, {MAX_EXPIRY_HOURS}]")
        if self.wholesale_markup <= 0 or self.retail_markup <= 0:
            raise ValueError("markups must be positive")

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "EngineConfig":
        """Build the engine policy from a Flask config (or any mapping)."""
        units = config.get("COMPOSITE_ALLOWED_UNITS", DEFAULT_ALLOWED_UNITS)
        if isinstance(units, str):
            units = tuple(part.strip() for part in units.split(","))
        return cls(
            allowed_units=tuple(units),
            max_batches_per_prepare=int(config.get("COMPOSITE_MAX_BATCHES_PER_PREPARE", 10)),
            expiring_soon_ratio=float(config.get("COMPOSITE_EXPIRING_SOON_RATIO", 0.8)),
            default_expiry_hours=int(config.get("COMPOSITE_DEFAULT_EXPIRY_HOURS", 24)),
            wholesale_markup=float(config.get("COMPOSITE_WHOLESALE_MARKUP", 1.3)),
            retail_markup=float(config.get("COMPOSITE_RETAIL_MARKUP", 1.5)),
        )
