import logging
import os
from typing import Any

from flask import Flask

from .config import ENV_DIAGNOSTICS, EngineConfig
from .extensions import db
from .logging_config import configure_logging

logger = logging.getLogger(__name__)

ENGINE_CONFIG_KEY = "composite_engine_config"


def create_app(config: dict[str, Any] | None = None) -> Flask:
    app = Flask(__name__)

    _load_base_config(app, config)
    _configure_sqlite_engine_options(app)

    db.init_app(app)
    from . import models  # noqa: F401  # ensure models are registered on the metadata

    configure_logging(app)
    app.extensions[ENGINE_CONFIG_KEY] = EngineConfig.from_mapping(app.config)

    from .management import register_commands

    register_commands(app)
    return app


def _load_base_config(app: Flask, config: dict[str, Any] | None) -> None:
    app.config.from_object("prepline.config.Config")
    if config:
        app.config.update(config)
    app.config["ENV_DIAGNOSTICS"] = ENV_DIAGNOSTICS
    for warning in ENV_DIAGNOSTICS.get("warnings", ()):
        logger.warning("Environment configuration warning: %s", warning)

    if config and "DATABASE_URL" in config:
        app.config["SQLALCHEMY_DATABASE_URI"] = config["DATABASE_URL"]

    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if uri.startswith("sqlite:///") and ":memory:" not in uri:
        os.makedirs(os.path.dirname(uri[len("sqlite:///"):]) or ".", exist_ok=True)


def _configure_sqlite_engine_options(app: Flask) -> None:
    uri = app.config.get("SQLALCHEMY_DATABASE_URI") or ""
    if not uri.startswith("sqlite"):
        return
    # pool sizing options are rejected by sqlite's pool implementations
    options = {
        key: value
        for key, value in dict(app.config.get("SQLALCHEMY_ENGINE_OPTIONS") or {}).items()
        if key not in {"pool_size", "max_overflow", "pool_timeout", "pool_use_lifo"}
    }
    if ":memory:" in uri or uri in {"sqlite://", "sqlite:///"}:
        from sqlalchemy.pool import StaticPool

        options["poolclass"] = StaticPool
        options["connect_args"] = {"check_same_thread": False}
    app.config["SQLALCHEMY_ENGINE_OPTIONS"] = options


def get_engine_config(app: Flask | None = None) -> EngineConfig:
    """Return the engine policy bound to ``app`` (or the current app)."""
    from flask import current_app

    target = app or current_app
    engine_config = target.extensions.get(ENGINE_CONFIG_KEY)
    if engine_config is None:
        engine_config = EngineConfig.from_mapping(target.config)
        target.extensions[ENGINE_CONFIG_KEY] = engine_config
    return engine_config
