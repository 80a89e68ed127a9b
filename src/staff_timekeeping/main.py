from __future__ import annotations

import importlib
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from .container import Container, build_container
from .database.bootstrap import apply_schema, list_tables
from .settings import get_settings_module
from .web.controller import register as register_attendance

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def create_app(container: Optional[Container] = None) -> Flask:
    """Application factory.

    Tests pass a ready-made container; otherwise one is built from the
    settings module selected by APP_ENV.
    """

    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))
    app.config["TESTING"] = bool(getattr(settings, "TESTING", False))
    configure_logging(getattr(settings, "LOG_LEVEL", "INFO"))

    if container is None:
        db_config = getattr(settings, "DB_CONFIG")
        logger.info(
            f"settings={settings_module} db={db_config.get('user')}@{db_config.get('host')}:"
            f"{db_config.get('port', 3306)}/{db_config.get('database')}"
        )
        if bool(getattr(settings, "AUTO_INIT_DB", False)):
            apply_schema(db_config)
            logger.info(f"schema ready (tables={len(list_tables(db_config))})")

        container = build_container(
            db_config=db_config,
            max_concurrency=int(getattr(settings, "ROSTER_MAX_CONCURRENCY", 0)),
            debounce_seconds=float(getattr(settings, "DEBOUNCE_SECONDS", 0.3)),
        )

    register_attendance(app, container)
    return app


def run() -> None:
    app = create_app()
    app.run(
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
        debug=app.config["DEBUG"],
    )


if __name__ == "__main__":
    run()
