from __future__ import annotations

from ..extensions import db


class ConfigEntry(db.Model):
    """
    Key-value application settings (currency, notifier credentials, report schedule).

    Last write wins; no history is kept.
    """
    __tablename__ = "config"

    key = db.Column(db.String(128), primary_key=True)
    value = db.Column(db.Text, nullable=False)

    def to_dict(self) -> dict:
        return {"key": self.key, "value": self.value}
