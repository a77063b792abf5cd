# Overview: Flask extension instances for database and migrations, plus accessors
# for the per-app collaborators registered in create_app().

from flask import current_app
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


def get_store():
    return current_app.extensions["ledger_store"]


def get_notifier():
    return current_app.extensions["report_notifier"]


def get_scheduler():
    """The running ReportScheduler, or None when SCHEDULER_ENABLED is off."""
    return current_app.extensions.get("report_scheduler")
