import logging
import time

from flask_jwt_extended import create_access_token, create_refresh_token
from redis.exceptions import RedisError

from board.errors import StorageIOFailure
from board.extensions.redis_client import get_redis_client
from board.models.user_model import Principal


logger = logging.getLogger(__name__)


def _revoked_key(jti: str) -> str:
    return f"revoked:{jti}"


def issue_tokens(principal: Principal):
    return {
        "access_token": create_access_token(identity=principal.username),
        "refresh_token": create_refresh_token(identity=principal.username),
    }


def refresh_access_token(username: str):
    return {
        "access_token": create_access_token(identity=username)
    }


def revoke_token(jwt_payload: dict):
    jti = jwt_payload["jti"]
    expires_at = jwt_payload.get("exp")
    # Keep the entry only as long as the token could still be presented.
    ttl = max(int(expires_at - time.time()), 1) if expires_at else None
    try:
        get_redis_client().set(_revoked_key(jti), "1", ex=ttl)
    except RedisError as e:
        logger.error("Could not revoke token %s: %s", jti, e)
        raise StorageIOFailure("Session store is unavailable") from e
    logger.info("Revoked %s token for %s", jwt_payload.get("type"), jwt_payload.get("sub"))


def is_token_revoked(jwt_payload: dict) -> bool:
    try:
        return bool(get_redis_client().exists(_revoked_key(jwt_payload["jti"])))
    except RedisError as e:
        logger.error("Could not check token revocation: %s", e)
        raise StorageIOFailure("Session store is unavailable") from e
