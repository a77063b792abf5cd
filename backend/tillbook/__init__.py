# backend/tillbook/__init__.py
from __future__ import annotations

import atexit

from flask import Flask
from sqlalchemy.exc import SQLAlchemyError

from .config import Config
from .errors import LedgerError, ValidationError
from .extensions import db, migrate
from .store import LedgerStore


def create_app(overrides: dict | None = None, *, notifier=None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    store = LedgerStore(db)
    app.extensions["ledger_store"] = store

    from .services import config_service
    from .services.notifier import TelegramNotifier

    def _telegram_credentials():
        return (
            config_service.get_config(store, config_service.KEY_TELEGRAM_TOKEN),
            config_service.get_config(store, config_service.KEY_TELEGRAM_CHAT_ID),
        )

    if notifier is None:
        notifier = TelegramNotifier(
            _telegram_credentials,
            api_base=app.config["TELEGRAM_API_BASE"],
            timeout=app.config["NOTIFY_TIMEOUT_SECONDS"],
            logger=app.logger,
        )
    app.extensions["report_notifier"] = notifier

    if app.config["SCHEDULER_ENABLED"]:
        _start_scheduler(app, store)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.inventory import inventory_bp
    from .routes.sales import sales_bp
    from .routes.reports import reports_bp
    from .routes.settings import settings_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(reports_bp)
    app.register_blueprint(settings_bp)

    @app.errorhandler(LedgerError)
    def handle_ledger_error(exc: LedgerError):
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s %s", exc.message, exc.details)
        return exc.to_dict(), exc.status_code

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def _start_scheduler(app: Flask, store: LedgerStore) -> None:
    from .services import config_service
    from .services.scheduler_service import ReportScheduler, make_report_job

    scheduler = ReportScheduler(make_report_job(app), logger=app.logger)
    app.extensions["report_scheduler"] = scheduler

    with app.app_context():
        try:
            schedule = config_service.get_report_schedule(store)
        except ValidationError as exc:
            app.logger.warning("Ignoring invalid stored report schedule: %s", exc.message)
            schedule = None
        except SQLAlchemyError:
            # schema not created yet (before `flask db upgrade` / `flask ledger init-db`)
            app.logger.warning("Report schedule not loaded; ledger tables are missing")
            store.session.rollback()
            schedule = None
    if schedule is not None:
        scheduler.start(schedule.hour, schedule.minute, schedule.timezone)

    def _shutdown():
        scheduler.stop()
        with app.app_context():
            store.close()

    atexit.register(_shutdown)
