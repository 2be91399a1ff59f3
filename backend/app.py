import logging

from flask import Flask, jsonify
from flask_cors import CORS

from backend.api import (
    auth_bp, companies_bp, hierarchy_bp, users_bp, tasks_bp, notifications_bp
)
from backend.config.settings import Settings
from backend.firebase_utils import init_firebase
from backend.middleware.error_middleware import ErrorHandler, register_error_handlers
from backend.services.firestore_store import FirestoreStore
from backend.services.hierarchy_service import HierarchyAuthorizationService

logger = logging.getLogger(__name__)


def configure_logging(level: str = None):
    logging.basicConfig(
        level=getattr(logging, (level or Settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(db=None, config: dict = None):
    """Create and configure the Flask application.

    Args:
        db: Firestore client to use. When omitted, Firebase is initialised
            from the environment (emulators or service-account credentials).
        config: Extra Flask config applied over the environment settings.
    """
    configure_logging()
    app = Flask(__name__)
    app.config.update(Settings.as_dict())
    if config:
        app.config.update(config)

    CORS(app,
         resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}},
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
         supports_credentials=True)

    if db is None:
        db = init_firebase()
    store = FirestoreStore(db)
    app.extensions["firestore"] = db
    app.extensions["hierarchy_store"] = store
    app.extensions["hierarchy_service"] = HierarchyAuthorizationService(store)

    register_error_handlers(app)
    app.before_request(ErrorHandler.log_request_info)

    @app.get("/")
    def health():
        return jsonify({"status": "ok", "service": "hierarchy-task-api"}), 200

    app.register_blueprint(auth_bp)
    app.register_blueprint(companies_bp)
    app.register_blueprint(hierarchy_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(tasks_bp)
    app.register_blueprint(notifications_bp)

    return app


def main():
    """Main entry point for running the application."""
    if Settings.FLASK_ENV != "development":
        Settings.validate()
    app = create_app()
    logger.info("Starting API on port %s", Settings.PORT)
    app.run(host="0.0.0.0", port=Settings.PORT, debug=Settings.DEBUG)


if __name__ == "__main__":  # pragma: no cover
    main()
