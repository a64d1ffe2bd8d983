from collections import namedtuple
from threading import Lock

import urllib3
from minio import Minio


MinioSettings = namedtuple(
    "MinioSettings",
    "endpoint access_key secret_key secure connect_timeout read_timeout pool_maxsize",
)

_clients = {}
_clients_lock = Lock()


def minio_settings(config) -> MinioSettings:
    return MinioSettings(
        endpoint=config["MINIO_ENDPOINT"],
        access_key=config["MINIO_ACCESS_KEY"],
        secret_key=config["MINIO_SECRET_KEY"],
        secure=bool(config["MINIO_SECURE"]),
        connect_timeout=float(config["MINIO_CONNECT_TIMEOUT"]),
        read_timeout=float(config["MINIO_READ_TIMEOUT"]),
        pool_maxsize=int(config.get("MINIO_HTTP_POOL_MAXSIZE", 32)),
    )


def _connect(settings: MinioSettings) -> Minio:
    # Failed requests surface immediately; the media store maps them to 503.
    pool = urllib3.PoolManager(
        timeout=urllib3.Timeout(
            connect=settings.connect_timeout, read=settings.read_timeout
        ),
        retries=False,
        maxsize=settings.pool_maxsize,
    )
    return Minio(
        settings.endpoint,
        access_key=settings.access_key,
        secret_key=settings.secret_key,
        secure=settings.secure,
        http_client=pool,
    )


def get_minio_client(config) -> Minio:
    """Return the shared client for these connection settings, creating it once."""
    settings = minio_settings(config)
    with _clients_lock:
        client = _clients.get(settings)
        if client is None:
            client = _connect(settings)
            _clients[settings] = client
        return client
