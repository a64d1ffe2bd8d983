from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import RequestEntityTooLarge

from board.config import Config
from board.errors import BoardError
from board.extensions.extensions import jwt, ma
from board.logging_config import setup_logging
from board.routes.auth_routes import auth_bp
from board.routes.main_routes import main_bp
from board.routes.post_routes import post_bp
from board.services import token_service
from board.services.registry import EXTENSION_KEY, build_services


def _register_jwt_callbacks():
    @jwt.token_in_blocklist_loader
    def check_if_token_revoked(jwt_header, jwt_payload):
        return token_service.is_token_revoked(jwt_payload)

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"error": "You must be logged in"}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"error": reason}), 422

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has expired"}), 401

    @jwt.revoked_token_loader
    def revoked_token(jwt_header, jwt_payload):
        return jsonify({"error": "Token has been revoked"}), 401


def _register_error_handlers(app):
    @app.errorhandler(BoardError)
    def handle_board_error(e):
        return jsonify({"error": e.message}), e.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return jsonify({"error": "Invalid request", "fields": e.messages}), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_request_too_large(e):
        return jsonify({"error": "Upload too large"}), 413


_register_jwt_callbacks()


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    setup_logging(app.config["LOG_LEVEL"])

    ma.init_app(app)
    jwt.init_app(app)
    app.extensions[EXTENSION_KEY] = build_services(app.config)

    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(post_bp, url_prefix="/api")
    app.register_blueprint(main_bp)
    _register_error_handlers(app)

    return app
