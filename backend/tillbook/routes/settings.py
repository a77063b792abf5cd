from flask import Blueprint, request

from ..errors import NotFound
from ..extensions import get_store
from ..services import config_service


settings_bp = Blueprint("settings", __name__, url_prefix="/api/config")


@settings_bp.get("")
def list_config():
    return {"items": config_service.list_config(get_store())}


@settings_bp.get("/<key>")
def get_config(key: str):
    store = get_store()
    value = config_service.get_config(store, key)
    if value is None:
        raise NotFound("Config key not found", details={"key": key})
    if key in config_service.SENSITIVE_KEYS:
        value = "***"
    return {"key": key, "value": value}


@settings_bp.put("/<key>")
def put_config(key: str):
    """Body: {"value": "..."}; last write wins."""
    data = request.get_json(silent=True) or {}
    config_service.set_config(get_store(), key, data.get("value"))
    return {"key": key, "updated": True}
