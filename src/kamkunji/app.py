import atexit
import logging
import uuid
from typing import Optional

from flask import Flask, g, jsonify, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from kamkunji import db
from kamkunji.core.config import Config
from kamkunji.core.dependencies import build_container
from kamkunji.core.exceptions import BaseAPIException
from kamkunji.routes import (
    admin_bp,
    auth_bp,
    cart_bp,
    categories_bp,
    emails_bp,
    orders_bp,
    payments_bp,
    products_bp,
    reports_bp,
    setup_bp,
    wishlist_bp,
)
from kamkunji.services.payment_poller import PaymentPollerRegistry
from kamkunji.utils.date_utils import DateUtils

logger = logging.getLogger(__name__)


def _error_body(code: str, message: str, details=None):
    return {
        "success": False,
        "error": {"code": code, "message": message, "details": details or {}},
        "timestamp": DateUtils.now_utc().isoformat(),
        "request_id": getattr(g, "request_id", None),
    }


def create_app(config: Optional[Config] = None, gateway=None, email_client=None) -> Flask:
    """
    Application factory.

    gateway and email_client replace the M-Pesa and Resend clients;
    tests pass recording fakes.
    """
    config = config or Config.from_env()
    config.validate()

    logging.basicConfig(
        level=config.app.log_level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
    )

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.security.secret_key
    app.config["DEBUG"] = config.app.debug

    db.init_engine(config.database)
    if config.app.auto_create_tables:
        db.create_schema()

    container = build_container(config, gateway=gateway, email_client=email_client)
    app.extensions["kamkunji"] = container
    atexit.register(container.get(PaymentPollerRegistry).cancel_all)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get("X-Request-Id") or uuid.uuid4().hex[:12]

    @app.after_request
    def echo_request_id(response):
        response.headers["X-Request-Id"] = getattr(g, "request_id", "")
        return response

    # ------------------------------------------------------------------ #
    # Blueprints, each domain registered under /api/v1/                   #
    # ------------------------------------------------------------------ #
    prefix = f"/api/{config.api.version}"
    app.register_blueprint(products_bp,   url_prefix=f"{prefix}/products")
    app.register_blueprint(categories_bp, url_prefix=f"{prefix}/categories")
    app.register_blueprint(cart_bp,       url_prefix=f"{prefix}/carts")
    app.register_blueprint(wishlist_bp,   url_prefix=f"{prefix}/wishlists")
    app.register_blueprint(orders_bp,     url_prefix=f"{prefix}/orders")
    app.register_blueprint(payments_bp,   url_prefix=f"{prefix}/payments")
    app.register_blueprint(reports_bp,    url_prefix=f"{prefix}/reports")
    app.register_blueprint(auth_bp,       url_prefix=f"{prefix}/auth")
    app.register_blueprint(emails_bp,     url_prefix=f"{prefix}/emails")
    app.register_blueprint(admin_bp,      url_prefix=f"{prefix}/admin")
    app.register_blueprint(setup_bp,      url_prefix=f"{prefix}/setup")

    # ------------------------------------------------------------------ #
    # Error handlers, consistent JSON error envelope                      #
    # ------------------------------------------------------------------ #
    @app.errorhandler(BaseAPIException)
    def api_error(e: BaseAPIException):
        if e.status_code >= 500:
            logger.error(f"{e.error_code}: {e.internal_message}")
        else:
            logger.info(f"{e.error_code} ({e.status_code}): {e.internal_message}")
        body = e.to_dict()
        body.update(timestamp=DateUtils.now_utc().isoformat(), request_id=getattr(g, "request_id", None))
        return jsonify(body), e.status_code

    @app.errorhandler(HTTPException)
    def http_error(e: HTTPException):
        code = (e.name or "error").upper().replace(" ", "_")
        return jsonify(_error_body(code, str(e.description))), e.code

    @app.errorhandler(SQLAlchemyError)
    def db_error(e):
        logger.error(f"Database error: {e}", exc_info=True)
        return jsonify(_error_body("DATABASE_ERROR", "A database error occurred.")), 500

    @app.errorhandler(Exception)
    def internal_error(e):
        logger.error(f"Unhandled error: {e}", exc_info=True)
        return jsonify(_error_body("INTERNAL_ERROR", "An internal server error occurred.")), 500

    # ------------------------------------------------------------------ #
    # Health check                                                         #
    # ------------------------------------------------------------------ #
    @app.get("/health")
    def health():
        """Liveness + readiness probe. Returns 503 if DB is unreachable."""
        try:
            db.check_connection()
        except SQLAlchemyError as exc:
            logger.error(f"Health check failed: {exc}")
            return jsonify({"status": "error", "database": "unreachable"}), 503
        return jsonify({
            "status": "ok",
            "database": "reachable",
            "payment_gateway": config.payment_gateway,
            "timestamp": DateUtils.now_utc().isoformat(),
        }), 200

    logger.info(f"Kamkunji Ndogo API ready ({config.environment}, gateway={config.payment_gateway})")
    return app


if __name__ == "__main__":
    cfg = Config.from_env()
    application = create_app(cfg)
    application.run(debug=cfg.app.debug, host=cfg.app.host, port=cfg.app.port)
