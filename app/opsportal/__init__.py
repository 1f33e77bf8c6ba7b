import logging
import os
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, abort, g, jsonify, redirect, render_template, request, session, url_for

from app.opsportal.config import load_config
from app.opsportal.db import init_db, teardown_db_session
from app.opsportal.routes import bp as routes_bp
from app.opsportal.auth import bp as auth_bp, load_current_user
from app.opsportal.admin import bp as admin_bp
from app.opsportal.ops import bp as ops_bp
from app.opsportal.api import bp as api_bp
from app.opsportal.modules.parties.admin import bp as employees_bp
from app.opsportal.modules.partners.admin import bp as partners_bp
from app.opsportal.modules.campaigns.admin import bp as campaigns_bp
from app.opsportal.modules.service_catalog.admin import bp as service_catalog_bp
from app.opsportal.modules.notes.admin import bp as notes_bp
from app.opsportal.modules.permissions.admin import bp as permissions_bp
from app.opsportal.modules.task_templates.admin import bp as task_templates_bp
from app.opsportal.modules.access_items.admin import bp as access_items_bp
from app.opsportal.modules.campaign_profiles.admin import bp as campaign_profiles_bp
from app.opsportal.modules.packages.admin import bp as packages_bp

logger = logging.getLogger(__name__)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=8)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True

    # CSRF protection (minimal)
    from app.opsportal.security import ensure_csrf_token, validate_csrf
    from app.opsportal.rbac import required_permission_for_path, user_has_permission
    from app.opsportal.utils import cents_to_dollars, format_date, format_datetime, format_label

    @app.context_processor
    def _inject_csrf() -> dict:
        return {"csrf_token": ensure_csrf_token()}

    @app.context_processor
    def _inject_permissions() -> dict:
        def has_perm(key: str) -> bool:
            return user_has_permission(getattr(g, "current_user", None), key)

        return {"has_perm": has_perm}

    @app.template_filter("dateformat")
    def _dateformat_filter(value, format: str = "%Y-%m-%d") -> str:
        if value is None:
            return "-"
        if hasattr(value, "strftime"):
            return value.strftime(format)
        return str(value)

    app.add_template_filter(format_date, "format_date")
    app.add_template_filter(format_datetime, "format_datetime")
    app.add_template_filter(format_label, "label")

    @app.template_filter("cents")
    def _cents_filter(value) -> str:
        return cents_to_dollars(value) or "-"

    @app.before_request
    def _csrf_guard():
        if request.path.startswith(("/static/", "/health", "/healthz")):
            return None
        ensure_csrf_token()
        session.permanent = True
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            # Allow safe auth endpoints to pass through (login/logout)
            if (request.endpoint or "").startswith("auth."):
                return None
            if not validate_csrf(request):
                if request.path.startswith("/api/"):
                    return jsonify({"error": "CSRF token missing or invalid."}), 400
                return render_template("errors/400.html", message="CSRF token missing or invalid."), 400

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if not app.config.get("DATABASE_URL") or str(app.config["DATABASE_URL"]).strip() == "":
            raise RuntimeError("DATABASE_URL is required in production.")
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    def _dispose_engine_on_fork() -> None:
        if hasattr(os, "register_at_fork"):
            def _after_fork_child():
                engine = app.extensions.get("sqlalchemy_engine")
                if engine:
                    engine.dispose()
                    app.logger.info("Disposed DB engine after fork (pid=%s)", os.getpid())

            os.register_at_fork(after_in_child=_after_fork_child)

    _dispose_engine_on_fork()

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/auth")
    app.register_blueprint(admin_bp, url_prefix="/admin")
    app.register_blueprint(ops_bp, url_prefix="/ops")
    app.register_blueprint(employees_bp, url_prefix="/ops")
    app.register_blueprint(partners_bp, url_prefix="/ops")
    app.register_blueprint(campaigns_bp, url_prefix="/ops")
    app.register_blueprint(service_catalog_bp, url_prefix="/ops")
    app.register_blueprint(notes_bp, url_prefix="/ops")
    app.register_blueprint(permissions_bp, url_prefix="/ops")
    app.register_blueprint(task_templates_bp, url_prefix="/ops")
    app.register_blueprint(access_items_bp, url_prefix="/ops")
    app.register_blueprint(campaign_profiles_bp, url_prefix="/ops")
    app.register_blueprint(packages_bp, url_prefix="/ops")
    app.register_blueprint(api_bp, url_prefix="/api")

    app.before_request(load_current_user)

    @app.before_request
    def _route_access_guard():
        required = required_permission_for_path(request.path)
        if required is None:
            return None
        user = getattr(g, "current_user", None)
        if request.path.startswith("/api/"):
            if not user_has_permission(user, required):
                app.logger.info(
                    "API access denied path=%s user=%s request_id=%s",
                    request.path,
                    getattr(user, "email", None),
                    getattr(g, "request_id", None),
                )
                return jsonify({"error": "Forbidden"}), 403
            return None
        if not user:
            nxt = request.full_path if request.query_string else request.path
            return redirect(url_for("auth.login_get", next=nxt))
        if not user_has_permission(user, required):
            # Hide the page entirely from signed-in users who may not use the portal.
            app.logger.warning(
                "Route access denied path=%s user=%s missing=%s request_id=%s",
                request.path,
                user.email,
                required,
                getattr(g, "request_id", None),
            )
            abort(404)
        return None

    app.teardown_appcontext(teardown_db_session)

    def _wants_json() -> bool:
        return request.path.startswith("/api/")

    @app.errorhandler(400)
    def _err_400(e):  # type: ignore[no-redef]
        if _wants_json():
            return jsonify({"error": "Bad request"}), 400
        return render_template("errors/400.html", message=getattr(e, "description", None)), 400

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _wants_json():
            return jsonify({"error": "Not found"}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in the logs.
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        if _wants_json():
            return jsonify({"error": "Internal server error", "request_id": rid}), 500
        return render_template("errors/500.html", request_id=rid), 500

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        if _wants_json():
            return jsonify({"error": "Forbidden"}), 403
        return render_template("errors/403.html", missing_permission=missing), 403

    logger.info("create_app() complete; app ready to serve")

    return app
