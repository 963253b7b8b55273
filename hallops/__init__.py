# -*- coding: utf-8 -*-
import logging
import logging.config

from flask import Flask, jsonify
from flask_login import login_required

from .config import Config, ensure_instance, logging_config
from .errors import HallOpsError
from .extensions import db, migrate, login_manager

# модели должны быть импортированы до create_all / миграций
from . import models  # noqa: F401

# блюпринты
from .auth import auth_bp
from .modules.shifts import bp as shifts_bp
from .modules.cash import bp as cash_bp
from .modules.payroll import bp as payroll_bp
from .modules.admin import bp as admin_bp

logger = logging.getLogger(__name__)


def create_app(config_object=Config):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object)
    ensure_instance(app)

    logging.config.dictConfig(logging_config(app.config.get("LOG_LEVEL", "INFO")))

    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "error": "unauthorized"}), 401

    # --- ошибки предметной области -> JSON ---
    @app.errorhandler(HallOpsError)
    def handle_domain_error(e: HallOpsError):
        if e.status >= 500:
            logger.error("%s: %s", e.code, e.message)
        return jsonify(e.to_dict()), e.status

    # --- блюпринты ---
    app.register_blueprint(auth_bp)
    app.register_blueprint(shifts_bp)
    app.register_blueprint(cash_bp)
    app.register_blueprint(payroll_bp)
    app.register_blueprint(admin_bp)

    @app.route("/")
    @login_required
    def home():
        return jsonify({"ok": True, "service": "hallops"})

    @app.route("/health")
    def health():
        return jsonify({"ok": True})

    return app
