from flask import Flask
from flask_cors import CORS

from .config import Config
from .logging_config import setup_logging


def create_app(testing: bool = False, services=None):
    app = Flask(__name__)
    app.config["TESTING"] = testing

    setup_logging()

    if not testing and Config.FLASK_ENV == "production":
        Config.validate()

    # CORS configuration for development and production
    allowed_origins = [
        "http://localhost:5173",  # Local Vite dev server
        "http://localhost:5000",  # Express dev server
    ]

    # Add production frontend URL if set
    if Config.FRONTEND_URL:
        allowed_origins.append(Config.FRONTEND_URL)

    # In development, allow all origins for easier testing
    if Config.FLASK_ENV == "development":
        CORS(app)
    else:
        CORS(app, origins=allowed_origins)

    if services is None:
        from .services.container import create_services
        services = create_services()
    app.extensions["services"] = services

    from .routes import bp as api_bp
    app.register_blueprint(api_bp, url_prefix="/api")

    return app
