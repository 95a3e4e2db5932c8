import os
import re
import tempfile

from flask import current_app

_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9_.@-]")


def ensure_dir(path: str) -> None:
    """Create directory if missing (mkdir -p equivalent)."""
    os.makedirs(path, exist_ok=True)


def write_atomic(path: str, data, mode: str = "wb") -> None:
    """Write data to a temporary file then atomically rename to target path."""
    dir_path = os.path.dirname(path)
    ensure_dir(dir_path)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path)
    try:
        with os.fdopen(fd, mode) as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def _segment(value) -> str:
    cleaned = _UNSAFE_SEGMENT.sub("_", str(value)).lstrip(".")
    return cleaned or "_"


def certificates_root() -> str:
    site_root = current_app.config.get("SITE_ROOT", "/srv")
    return os.path.join(site_root, "certificates")


def certificate_rel_path(event_id, user_id, certificate_number: str, ext: str) -> str:
    return "/".join(
        [_segment(event_id), _segment(user_id), f"{_segment(certificate_number)}.{ext}"]
    )


def write_certificate_artifact(rel_path: str, data: bytes) -> str:
    full_path = os.path.join(certificates_root(), *rel_path.split("/"))
    write_atomic(full_path, data)
    os.chmod(full_path, 0o644)  # world-readable for the static file server
    return full_path


def build_public_url(rel_path: str) -> str:
    base = current_app.config.get("CERT_PUBLIC_BASE_URL", "/certificates/files")
    return f"{base.rstrip('/')}/{rel_path}"
