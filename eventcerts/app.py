import logging
import os

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from . import models  # noqa: E402,F401  ensures tables register on db.metadata
from .shared.assets import AssetFetcher
from .shared.certificates_fonts import FontResolver


def _env_flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).strip().lower() not in ("0", "false", "no", "off", "")


def create_app():
    app = Flask(__name__)
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.config["PREFERRED_URL_SCHEME"] = "https"

    DB_USER = os.getenv("DB_USER", "eventcerts")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "eventcerts")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 2 * 1024 * 1024

    app.config["SITE_ROOT"] = os.getenv("SITE_ROOT", "/srv")
    app.config["VERIFY_BASE_URL"] = os.getenv("VERIFY_BASE_URL", "http://localhost:5000")
    app.config["CERT_PUBLIC_BASE_URL"] = os.getenv(
        "CERT_PUBLIC_BASE_URL", "/certificates/files"
    )
    app.config["FONT_DIR"] = os.getenv("FONT_DIR", os.path.join(app.root_path, "fonts"))
    app.config["FONT_FETCH_REMOTE"] = _env_flag("FONT_FETCH_REMOTE")
    app.config["ASSET_FETCH_TIMEOUT"] = float(os.getenv("ASSET_FETCH_TIMEOUT", "10"))
    app.config["ASSET_FETCH_WORKERS"] = int(os.getenv("ASSET_FETCH_WORKERS", "4"))

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    app.logger.setLevel(log_level)
    logging.getLogger("eventcerts").setLevel(log_level)

    db.init_app(app)

    fetcher = AssetFetcher(
        timeout=app.config["ASSET_FETCH_TIMEOUT"],
        max_workers=app.config["ASSET_FETCH_WORKERS"],
    )
    app.extensions["eventcerts"] = {
        "fetcher": fetcher,
        "fonts": FontResolver(
            fetcher.fetch_bytes,
            font_dir=app.config["FONT_DIR"],
            remote=app.config["FONT_FETCH_REMOTE"],
        ),
    }

    from .routes.certificates import bp as certificates_bp

    app.register_blueprint(certificates_bp)

    @app.get("/verify-certificate/<path:certificate_number>")
    def verify(certificate_number: str):
        from .shared.certificates import verify_certificate

        fields = verify_certificate(certificate_number)
        if fields is None:
            return jsonify({"ok": False}), 404
        return jsonify({"ok": True, **fields})

    return app
