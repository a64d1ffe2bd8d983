from board.db import JsonDocument
from board.errors import UsernameTaken
from board.models.user_model import User


class UserRepository:
    def __init__(self, document: JsonDocument):
        self.document = document

    def get_by_username(self, username: str):
        for record in self.document.read():
            if record.get("username") == username:
                return User.from_dict(record)
        return None

    def create_user(self, username, password_hash):
        user = User(username=username, password_hash=password_hash)

        def _append(records):
            # Checked again under the document lock; a caller's earlier
            # lookup may be stale by now.
            if any(record.get("username") == username for record in records):
                raise UsernameTaken()
            records.append(user.to_dict())
            return user

        return self.document.mutate(_append)
