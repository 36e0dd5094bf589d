# payroll_api/extensions.py
import os

from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()
cors = CORS()

_PG_PREFIXES = ("postgres://", "postgresql://")


def normalize_db_url(url: str) -> str:
    """Point bare postgres URLs (Render / Heroku style) at the psycopg 3 driver."""
    for prefix in _PG_PREFIXES:
        if url and url.startswith(prefix):
            return "postgresql+psycopg://" + url[len(prefix):]
    return url


def init_db(app):
    url = normalize_db_url(app.config.get("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL", ""))
    app.config["SQLALCHEMY_DATABASE_URI"] = url

    if not url.startswith("sqlite"):
        app.config.setdefault("SQLALCHEMY_ENGINE_OPTIONS", {
            "pool_pre_ping": True,
            "pool_recycle": 270,
            "pool_size": int(os.getenv("DB_POOL_SIZE", "5")),
            "max_overflow": 2,
            "pool_timeout": 30,
        })

    db.init_app(app)
