"""Flask application factory for the residential society hub."""
import json
import os
import uuid
from datetime import datetime
from typing import Optional, Type

import click
from dotenv import load_dotenv
from flask import Flask, g, render_template, request
from sqlalchemy.engine.url import make_url

from extensions import csrf, db, login_manager, migrate
from utils.logger import init_logging
from utils.security import apply_security_headers

CONFIG_ALIASES = {
    "dev": "development",
    "prod": "production",
    "test": "testing",
}


def resolve_config_class(config_name: Optional[str] = None) -> Type:
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    classes = {
        "development": DevelopmentConfig,
        "production": ProductionConfig,
        "testing": TestingConfig,
    }
    key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    return classes.get(CONFIG_ALIASES.get(key, key), ProductionConfig)


def prepare_sqlite_path(database_uri: str) -> None:
    """File-backed SQLite needs its folder before the first connection."""
    url = make_url(database_uri)
    if not url.drivername.startswith("sqlite") or url.database in (None, "", ":memory:"):
        return
    os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)


def register_error_pages(app: Flask) -> None:
    def _render(status: int):
        return render_template(f"errors/{status}.html"), status

    @app.errorhandler(403)
    def forbidden(error):
        app.logger.warning("Forbidden", extra={"path": request.path, "request_id": g.get("request_id")})
        return _render(403)

    @app.errorhandler(404)
    def not_found(error):
        app.logger.info("Not found", extra={"path": request.path, "request_id": g.get("request_id")})
        return _render(404)

    @app.errorhandler(500)
    def server_error(error):
        app.logger.exception("Unhandled error", extra={"path": request.path, "request_id": g.get("request_id")})
        return _render(500)


def register_template_helpers(app: Flask) -> None:
    from models import NOTICE_TYPE_BADGES, QUERY_STATUS_BADGES

    @app.template_filter("epoch_ms")
    def format_epoch_ms(value, fmt: str = "%d %b %Y, %H:%M"):
        if not value:
            return ""
        return datetime.fromtimestamp(int(value) / 1000).strftime(fmt)

    @app.template_filter("status_label")
    def status_label(status: str) -> str:
        return (status or "").replace("_", " ")

    @app.context_processor
    def inject_badges():
        return {"status_badges": QUERY_STATUS_BADGES, "notice_type_badges": NOTICE_TYPE_BADGES}


def register_blueprints(app: Flask) -> None:
    from routes import auth_bp, community_bp, main_bp, queries_bp

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(queries_bp)
    app.register_blueprint(community_bp)

    @app.route("/favicon.ico")
    def favicon():
        if os.path.exists(os.path.join(app.static_folder or "static", "favicon.ico")):
            return app.send_static_file("favicon.ico")
        return "", 204


def register_cli(app: Flask) -> None:
    @app.cli.command("export-state")
    @click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), default=None)
    def export_state(output):
        """Write the stored society state document as JSON (stdout by default)."""
        from utils.state_store import load_state

        payload = json.dumps(load_state().to_dict(), indent=2)
        if output:
            with open(output, "w", encoding="utf-8") as handle:
                handle.write(payload)
            click.echo(f"State written to {output}")
        else:
            click.echo(payload)


def create_app(config_name: Optional[str] = None) -> Flask:
    """Build the app for ``config_name`` (or FLASK_CONFIG / FLASK_ENV)."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(resolve_config_class(config_name)())
    app.config.from_pyfile("config.py", silent=True)
    os.makedirs(app.instance_path, exist_ok=True)
    prepare_sqlite_path(app.config["SQLALCHEMY_DATABASE_URI"])

    app.logger = init_logging(app)

    csrf.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(house_number):
        from utils.state_store import request_state

        return request_state().find_user(house_number) if house_number else None

    register_blueprints(app)
    register_error_pages(app)
    register_template_helpers(app)
    register_cli(app)

    @app.before_request
    def _tag_request() -> None:
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]

    @app.after_request
    def _secure_response(response):
        response.headers.setdefault("X-Request-ID", g.get("request_id", ""))
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    with app.app_context():
        from utils.state_store import ensure_seed_state

        db.create_all()
        ensure_seed_state()

    return app
