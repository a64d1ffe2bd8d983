import logging

from werkzeug.security import check_password_hash, generate_password_hash

from board.errors import InvalidCredentials, InvalidRequest, UsernameTaken
from board.models.user_model import Principal
from board.repositories.user_repository import UserRepository


logger = logging.getLogger(__name__)


class PasswordHasher:
    """Salted one-way password verifier."""

    def __init__(self, method: str = "scrypt"):
        self.method = method

    def hash(self, password: str) -> str:
        return generate_password_hash(password, method=self.method)

    def matches(self, password: str, verifier: str) -> bool:
        return check_password_hash(verifier, password)


def _require_non_empty_string(value):
    return isinstance(value, str) and value.strip()


class AuthService:
    def __init__(self, users: UserRepository, hasher: PasswordHasher):
        self.users = users
        self.hasher = hasher

    def register(self, username, password) -> Principal:
        if not _require_non_empty_string(username) or not _require_non_empty_string(password):
            raise InvalidRequest("Missing fields")

        username = username.strip()
        if self.users.get_by_username(username):
            raise UsernameTaken()

        user = self.users.create_user(
            username=username,
            password_hash=self.hasher.hash(password),
        )
        logger.info("Registered user %s", user.username)
        return Principal(username=user.username)

    def verify(self, username, password) -> Principal:
        if not _require_non_empty_string(username) or not _require_non_empty_string(password):
            raise InvalidCredentials()

        username = username.strip()
        user = self.users.get_by_username(username)
        if not user or not self.hasher.matches(password, user.password_hash):
            logger.warning("Failed login for %s", username)
            raise InvalidCredentials()

        return Principal(username=user.username)
