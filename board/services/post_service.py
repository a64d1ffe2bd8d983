"""Post operations on behalf of an authenticated principal.

Every mutating call runs the same steps: authenticate the principal, locate
the post, check ownership, apply the change through the repository and only
then touch attachments. A post is located by its position in the listing or
by its id; bounds are always checked before ownership.
"""
import logging

from board.errors import (
    AttachmentNotFound,
    Conflict,
    Forbidden,
    InvalidRequest,
    NoFilesProvided,
    StorageIOFailure,
    Unauthorized,
)
from board.models.post_model import EDITABLE_FIELDS, Post
from board.models.user_model import Principal
from board.repositories.media_repository import MediaStore
from board.repositories.post_repository import PostRepository


logger = logging.getLogger(__name__)


def _require_principal(principal) -> str:
    if not isinstance(principal, Principal) or not principal.username:
        raise Unauthorized()
    return principal.username


def _owner_check(username: str, expected_id=None):
    def check(post: Post):
        if expected_id is not None and post.id != expected_id:
            raise Conflict()
        if post.author != username:
            raise Forbidden()

    return check


def _clean_patch(patch) -> dict:
    if not isinstance(patch, dict):
        raise InvalidRequest("Invalid JSON body")

    cleaned = {name: patch[name] for name in EDITABLE_FIELDS if name in patch}
    if not cleaned:
        raise InvalidRequest("At least one field is required")
    for name, value in cleaned.items():
        if not isinstance(value, str):
            raise InvalidRequest(f"{name.capitalize()} must be a string")
    if "title" in cleaned and not cleaned["title"].strip():
        raise InvalidRequest("Title is required")
    return cleaned


class PostService:
    def __init__(self, posts: PostRepository, media: MediaStore):
        self.posts = posts
        self.media = media

    def list_posts(self) -> list[Post]:
        return self.posts.list()

    def create_post(self, principal, title, content, uploads):
        username = _require_principal(principal)

        if not isinstance(title, str) or not title.strip():
            raise InvalidRequest("Title is required")
        if content is None:
            content = ""
        if not isinstance(content, str):
            raise InvalidRequest("Content must be a string")

        uploads = list(uploads or [])
        if not uploads:
            raise NoFilesProvided()

        names = self.media.store_many(uploads)
        post = Post.create(title=title, content=content, files=names, author=username)
        try:
            index = self.posts.append(post)
        except Exception:
            self.media.discard(names)
            raise

        logger.info("%s created post %s with %d file(s)", username, post.id, len(names))
        return index, post

    def edit_post(self, principal, index, patch, expected_id=None) -> Post:
        username = _require_principal(principal)
        cleaned = _clean_patch(patch)
        post = self.posts.replace_at(index, cleaned, check=_owner_check(username, expected_id))
        logger.info("%s edited post %s at index %s", username, post.id, index)
        return post

    def edit_post_by_id(self, principal, post_id, patch) -> Post:
        username = _require_principal(principal)
        cleaned = _clean_patch(patch)
        post = self.posts.replace_by_id(post_id, cleaned, check=_owner_check(username))
        logger.info("%s edited post %s", username, post.id)
        return post

    def delete_post(self, principal, index, expected_id=None) -> Post:
        username = _require_principal(principal)
        removed = self.posts.remove_at(index, check=_owner_check(username, expected_id))
        logger.info("%s deleted post %s at index %s", username, removed.id, index)
        self._remove_attachments(removed)
        return removed

    def delete_post_by_id(self, principal, post_id) -> Post:
        username = _require_principal(principal)
        removed = self.posts.remove_by_id(post_id, check=_owner_check(username))
        logger.info("%s deleted post %s", username, removed.id)
        self._remove_attachments(removed)
        return removed

    def _remove_attachments(self, post: Post):
        # Runs only once the post's removal has been written. Every file is
        # attempted; storage failures are reported once all have been tried.
        failed = []
        for name in post.files:
            try:
                self.media.delete(name)
            except AttachmentNotFound:
                logger.warning("Attachment %s of post %s was already gone", name, post.id)
            except StorageIOFailure:
                failed.append(name)

        if failed:
            logger.error(
                "Post %s was deleted but %d attachment(s) remain: %s",
                post.id,
                len(failed),
                ", ".join(failed),
            )
            raise StorageIOFailure("Post deleted but some attachments could not be removed")
