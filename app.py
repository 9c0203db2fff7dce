import logging
import os
from datetime import datetime

from flask import Flask, jsonify, request
from flask_cors import CORS
from flask_limiter import Limiter
from sqlalchemy import text
from werkzeug.middleware.proxy_fix import ProxyFix

import config
from activity_api import activity_api
from auth import load_identity
from errors import register_error_handlers
from extensions import db
from interactions import interactions_api
from medals_api import medals_api
from stats import stats_api

# Imported for their tables.
import models_activity  # noqa: F401
import models_content  # noqa: F401
import models_interactions  # noqa: F401
import models_medals  # noqa: F401
import models_users  # noqa: F401

logger = logging.getLogger(__name__)


def configure_logging(level: str = config.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def get_client_ip() -> str:
    """Return the best-effort client IP.

    After ProxyFix, request.access_route[0] should be the real client IP.
    Falls back to request.remote_addr for local development.
    """
    if request.access_route:
        return request.access_route[0]
    return request.remote_addr or "0.0.0.0"


def create_app(test_config=None) -> Flask:
    configure_logging()

    app = Flask(__name__)
    app.config.update(config.as_flask_config())
    if test_config:
        app.config.update(test_config)

    # Behind a reverse proxy in production; trust a single hop.
    if config.is_production():
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)

    db.init_app(app)
    CORS(app)

    # Set RATE_LIMIT_STORAGE_URL to a Redis URL when running several instances.
    limiter = Limiter(
        get_client_ip,
        app=app,
        default_limits=config.RATE_LIMIT_DEFAULTS,
        storage_uri=app.config.get("RATE_LIMIT_STORAGE_URL", config.RATE_LIMIT_STORAGE_URL),
    )
    app.extensions["engagement_limiter"] = limiter

    register_error_handlers(app)
    app.before_request(load_identity)

    app.register_blueprint(activity_api)
    app.register_blueprint(interactions_api)
    app.register_blueprint(stats_api)
    app.register_blueprint(medals_api)

    @app.get("/api/health")
    @limiter.exempt
    def health_check():
        try:
            db.session.execute(text("SELECT 1"))
            return jsonify(
                {
                    "success": True,
                    "status": "healthy",
                    "timestamp": datetime.utcnow().isoformat(),
                    "database": "connected",
                }
            )
        except Exception as e:
            db.session.rollback()
            logger.error(f"Health check failed: {e}")
            return jsonify(
                {
                    "success": False,
                    "status": "unhealthy",
                    "error": str(e),
                    "timestamp": datetime.utcnow().isoformat(),
                }
            ), 500

    with app.app_context():
        db.create_all()

    logger.info(f"Engagement engine ready ({app.config['SQLALCHEMY_DATABASE_URI'].split(':', 1)[0]})")
    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    debug = os.getenv("FLASK_ENV", "development") == "development"

    create_app().run(debug=debug, port=port)
