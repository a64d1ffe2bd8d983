from flask import Blueprint, request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from board.errors import InvalidIndex
from board.models.media_model import Upload
from board.models.user_model import Principal
from board.schemas.post_schema import PostCreateSchema, PostPatchSchema, PostSchema
from board.services.registry import get_services


post_bp = Blueprint("posts", __name__)

post_schema = PostSchema()
posts_schema = PostSchema(many=True)


def _current_principal():
    username = get_jwt_identity()
    return Principal(username=username) if username else None


def _parse_index(raw):
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise InvalidIndex() from None


def _load_patch():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, None
    patch = PostPatchSchema().load(data)
    expected_id = patch.pop("expected_id", None)
    return patch, expected_id


@post_bp.route("/posts", methods=["POST"])
@jwt_required()
def create_post():
    fields = PostCreateSchema().load(request.form)
    uploads = [
        Upload.from_file_storage(file)
        for file in request.files.getlist("files")
        if file and file.filename
    ]

    index, post = get_services().posts.create_post(
        _current_principal(),
        fields["title"],
        fields["content"],
        uploads,
    )
    return jsonify({
        "message": "Post created successfully",
        "index": index,
        "post": post_schema.dump(post),
    }), 201


@post_bp.route("/posts", methods=["GET"])
def list_posts():
    posts = get_services().posts.list_posts()
    return jsonify(posts_schema.dump(posts)), 200


@post_bp.route("/posts/<index>", methods=["PUT"])
@jwt_required()
def edit_post(index):
    patch, expected_id = _load_patch()
    if patch is None:
        return jsonify({"error": "Invalid JSON body"}), 400

    post = get_services().posts.edit_post(
        _current_principal(),
        _parse_index(index),
        patch,
        expected_id=expected_id,
    )
    return jsonify({
        "message": "Post updated successfully",
        "post": post_schema.dump(post),
    }), 200


@post_bp.route("/posts/<index>", methods=["DELETE"])
@jwt_required()
def delete_post(index):
    get_services().posts.delete_post(
        _current_principal(),
        _parse_index(index),
        expected_id=request.args.get("expected_id") or None,
    )
    return jsonify({"message": "Post deleted successfully"}), 200


@post_bp.route("/posts/id/<post_id>", methods=["PUT"])
@jwt_required()
def edit_post_by_id(post_id):
    patch, _ = _load_patch()
    if patch is None:
        return jsonify({"error": "Invalid JSON body"}), 400

    post = get_services().posts.edit_post_by_id(_current_principal(), post_id, patch)
    return jsonify({
        "message": "Post updated successfully",
        "post": post_schema.dump(post),
    }), 200


@post_bp.route("/posts/id/<post_id>", methods=["DELETE"])
@jwt_required()
def delete_post_by_id(post_id):
    get_services().posts.delete_post_by_id(_current_principal(), post_id)
    return jsonify({"message": "Post deleted successfully"}), 200
