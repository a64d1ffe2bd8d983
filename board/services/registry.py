from dataclasses import dataclass

from flask import current_app

from board.db import JsonDocument
from board.repositories.media_repository import MediaStore, build_media_store
from board.repositories.post_repository import PostRepository
from board.repositories.user_repository import UserRepository
from board.services.auth_service import AuthService, PasswordHasher
from board.services.post_service import PostService


EXTENSION_KEY = "board"


@dataclass
class BoardServices:
    auth: AuthService
    posts: PostService
    media: MediaStore


def build_services(config) -> BoardServices:
    media = build_media_store(config)
    users = UserRepository(JsonDocument(config["USERS_FILE"]))
    posts = PostRepository(JsonDocument(config["POSTS_FILE"]))
    return BoardServices(
        auth=AuthService(users, PasswordHasher(config["PASSWORD_HASH_METHOD"])),
        posts=PostService(posts, media),
        media=media,
    )


def get_services() -> BoardServices:
    return current_app.extensions[EXTENSION_KEY]
