from flask import Blueprint, request, jsonify
from flask_jwt_extended import get_jwt, get_jwt_identity, jwt_required

from board.services import token_service
from board.services.registry import get_services


auth_bp = Blueprint("auth", __name__)


def _request_data():
    if request.is_json:
        data = request.get_json(silent=True)
        return data if isinstance(data, dict) else None
    return request.form


@auth_bp.route("/register", methods=["POST"])
def register():
    data = _request_data()
    if data is None:
        return jsonify({"error": "Invalid JSON body"}), 400

    get_services().auth.register(data.get("username"), data.get("password"))
    return jsonify({"message": "User registered successfully"}), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = _request_data()
    if data is None:
        return jsonify({"error": "Invalid JSON body"}), 400

    principal = get_services().auth.verify(data.get("username"), data.get("password"))
    tokens = token_service.issue_tokens(principal)
    return jsonify({
        "message": "Logged in successfully",
        "username": principal.username,
        **tokens,
    }), 200


@auth_bp.route("/refresh", methods=["POST"])
@jwt_required(refresh=True)
def refresh_token():
    username = get_jwt_identity()
    return jsonify(token_service.refresh_access_token(username)), 200


@auth_bp.route("/logout", methods=["POST"])
@jwt_required(verify_type=False)
def logout():
    token_service.revoke_token(get_jwt())
    return jsonify({"message": "Logged out successfully"}), 200
