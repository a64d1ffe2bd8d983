"""Ordered post collection stored as one JSON document.

A post is addressed either by its position in the collection or by its
generated id. Every mutation runs as one transaction over the whole
document: locate the post, run the caller's ``check`` on it, apply the
change, write everything back. ``check`` raising aborts the transaction and
leaves the stored collection untouched.
"""
from board.db import JsonDocument
from board.errors import InvalidIndex, PostNotFound
from board.models.post_model import Post


def _locate_index(index):
    def locate(records):
        if isinstance(index, bool) or not isinstance(index, int):
            raise InvalidIndex()
        if not 0 <= index < len(records):
            raise InvalidIndex()
        return index

    return locate


def _locate_id(post_id):
    def locate(records):
        if post_id:
            for position, record in enumerate(records):
                if record.get("id") == post_id:
                    return position
        raise PostNotFound()

    return locate


class PostRepository:
    def __init__(self, document: JsonDocument):
        self.document = document

    def list(self) -> list[Post]:
        return [Post.from_dict(record) for record in self.document.read()]

    def append(self, post: Post) -> int:
        def _append(records):
            records.append(post.to_dict())
            return len(records) - 1

        return self.document.mutate(_append)

    def replace_at(self, index, patch: dict, check=None) -> Post:
        return self._replace(_locate_index(index), patch, check)

    def replace_by_id(self, post_id, patch: dict, check=None) -> Post:
        return self._replace(_locate_id(post_id), patch, check)

    def remove_at(self, index, check=None) -> Post:
        return self._remove(_locate_index(index), check)

    def remove_by_id(self, post_id, check=None) -> Post:
        return self._remove(_locate_id(post_id), check)

    def _replace(self, locate, patch, check):
        def _apply(records):
            position = locate(records)
            post = Post.from_dict(records[position])
            if check is not None:
                check(post)
            post.apply_patch(patch)
            records[position] = post.to_dict()
            return post

        return self.document.mutate(_apply)

    def _remove(self, locate, check):
        def _apply(records):
            position = locate(records)
            post = Post.from_dict(records[position])
            if check is not None:
                check(post)
            del records[position]
            return post

        return self.document.mutate(_apply)
