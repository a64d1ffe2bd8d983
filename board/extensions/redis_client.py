from threading import Lock

import redis
from flask import current_app


_redis_client = None
_redis_url = None
_redis_lock = Lock()


def get_redis_client():
    global _redis_client, _redis_url

    url = current_app.config["REDIS_URL"]
    with _redis_lock:
        if _redis_client is not None and _redis_url == url:
            return _redis_client

        _redis_client = redis.Redis.from_url(url, decode_responses=True)
        _redis_url = url
        return _redis_client
