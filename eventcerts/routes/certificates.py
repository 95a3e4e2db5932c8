from __future__ import annotations

from flask import Blueprint, abort, current_app, jsonify, request, send_from_directory

from ..app import db
from ..models import CertificateLayout, Event
from ..shared.certificates import issue_and_render, load_event_layout
from ..shared.certificates_layout import layout_to_dict, resolve_layout
from ..shared.errors import ConfigurationError, StorageUnavailableError
from ..shared.storage import certificates_root

bp = Blueprint("certificates", __name__, url_prefix="/certificates")


@bp.errorhandler(ConfigurationError)
def _configuration_error(exc: ConfigurationError):
    current_app.logger.warning("[CERT] configuration error: %s", exc)
    return jsonify({"ok": False, "error": str(exc)}), 400


@bp.errorhandler(ValueError)
def _bad_request(exc: ValueError):
    return jsonify({"ok": False, "error": str(exc)}), 400


@bp.errorhandler(StorageUnavailableError)
def _storage_unavailable(exc: StorageUnavailableError):
    return jsonify({"ok": False, "error": str(exc), "retry": True}), 503


@bp.post("/issue")
def issue():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValueError("expected a JSON object")
    event_id = payload.get("event_id")
    user_id = payload.get("user_id")
    if not isinstance(event_id, int) or isinstance(event_id, bool):
        raise ValueError("event_id must be an integer")
    if user_id in (None, ""):
        raise ValueError("user_id required")
    for key in ("participant_name", "event_title", "completion_date"):
        value = payload.get(key)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
    issued = issue_and_render(
        event_id,
        str(user_id),
        payload.get("participant_name"),
        payload.get("event_title"),
        payload.get("completion_date"),
    )
    return jsonify({"ok": True, **issued.record.public_fields()}), 201


@bp.get("/files/<path:filename>")
def artifact(filename: str):
    return send_from_directory(certificates_root(), filename)


@bp.get("/layouts/<int:event_id>")
def show_layout(event_id: int):
    row = db.session.query(CertificateLayout).filter_by(event_id=event_id).one_or_none()
    return jsonify(
        {
            "event_id": event_id,
            "stored": row.layout if row else {},
            "resolved": layout_to_dict(load_event_layout(event_id)),
        }
    )


@bp.put("/layouts/<int:event_id>")
def save_layout(event_id: int):
    if db.session.get(Event, event_id) is None:
        abort(404)
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ConfigurationError("layout: expected an object")
    resolve_layout(payload)
    row = db.session.query(CertificateLayout).filter_by(event_id=event_id).one_or_none()
    if row is None:
        row = CertificateLayout(event_id=event_id, layout=payload)
        db.session.add(row)
    else:
        row.layout = payload
    db.session.commit()
    current_app.logger.info("[CERT] layout saved event=%s keys=%s", event_id, sorted(payload))
    return jsonify({"ok": True, "event_id": event_id, "stored": payload})
