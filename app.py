import logging

from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from mongoengine import connect, disconnect
from werkzeug.exceptions import HTTPException

from config import Config
from errors import BookHavenError
from media import CloudinaryUploader
from routes import auth_routes, book_routes, health_routes
from services import bcrypt

logger = logging.getLogger(__name__)

jwt = JWTManager()


def configure_logging(level):
    root = logging.getLogger()
    if not any(isinstance(h, logging.StreamHandler) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(name)s - %(message)s"))
        root.addHandler(handler)
    root.setLevel(getattr(logging, level, logging.INFO))


def _error(message, status):
    return jsonify({"error": message}), status


# Every JWT failure is a 401 with the same body shape as the services' errors
@jwt.unauthorized_loader
def missing_token(reason):
    return _error("No token, authorization denied", 401)


@jwt.invalid_token_loader
def invalid_token(reason):
    return _error("Token is not valid", 401)


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return _error("Token has expired", 401)


def register_error_handlers(app):
    @app.errorhandler(BookHavenError)
    def handle_bookhaven_error(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        return _error(e.description, e.code)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception("Unhandled error")
        return _error("Server error", 500)


def create_app(overrides=None, media_uploader=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    app.config.update(overrides or {})

    configure_logging(app.config["LOG_LEVEL"])
    CORS(app, origins=[app.config["CORS_ORIGIN"]], supports_credentials=True)

    # MongoDB
    disconnect()
    connect(**app.config["MONGODB_SETTINGS"])

    bcrypt.init_app(app)
    jwt.init_app(app)
    app.extensions["media_uploader"] = media_uploader or CloudinaryUploader.from_config(app.config)

    app.register_blueprint(health_routes)
    app.register_blueprint(auth_routes)
    app.register_blueprint(book_routes)
    register_error_handlers(app)
    return app


if __name__ == "__main__":
    create_app().run(debug=True)
