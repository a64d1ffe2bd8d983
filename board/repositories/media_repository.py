import logging
import mimetypes
import os
import shutil
import stat
import tempfile
import time
import uuid
from contextlib import suppress
from datetime import datetime, timezone

from minio.error import S3Error
from werkzeug.utils import secure_filename

from board.errors import (
    AttachmentNotFound,
    FileTooLarge,
    InvalidRequest,
    StorageIOFailure,
    TooManyFiles,
)
from board.extensions.minio_client import get_minio_client
from board.models.media_model import StoredMedia


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024
DEFAULT_CONTENT_TYPE = "application/octet-stream"


def build_stored_name(original_name: str) -> str:
    safe_name = secure_filename(original_name or "") or "file"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}-{safe_name}"


def is_safe_name(name) -> bool:
    if not isinstance(name, str) or not name or name in {".", ".."}:
        return False
    if "\x00" in name or "/" in name or "\\" in name:
        return False
    return os.path.basename(name) == name


def _guess_content_type(name: str) -> str:
    return mimetypes.guess_type(name)[0] or DEFAULT_CONTENT_TYPE


def _get_stream_and_length(stream, max_size: int):
    try:
        stream.seek(0, os.SEEK_END)
        length = stream.tell()
        stream.seek(0)
        return stream, length
    except (AttributeError, OSError, ValueError):
        pass

    # Not seekable: spool it, stopping as soon as the ceiling is crossed.
    spooled = tempfile.SpooledTemporaryFile(max_size=1024 * 1024)
    length = 0
    while True:
        chunk = stream.read(COPY_CHUNK_SIZE)
        if not chunk:
            break
        length += len(chunk)
        if length > max_size:
            spooled.close()
            return None, length
        spooled.write(chunk)
    spooled.seek(0)
    return spooled, length


def _iter_file(fh, chunk_size: int):
    try:
        while True:
            chunk = fh.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        fh.close()


class MediaStore:
    """Attachment lifecycle shared by every storage backend.

    Subclasses provide ``_put``, ``resolve``, ``iter_bytes`` and ``delete``.
    """

    def __init__(self, max_files: int, max_file_size: int):
        self.max_files = max_files
        self.max_file_size = max_file_size

    def store_many(self, uploads) -> list[str]:
        """Persist a batch of uploads and return their stored names.

        The whole batch is validated before anything is written. If writing
        one file fails, the files already written for this batch are removed
        again before the error propagates.
        """
        uploads = list(uploads)
        if len(uploads) > self.max_files:
            raise TooManyFiles(f"Maximum {self.max_files} files allowed")

        prepared = []
        try:
            for upload in uploads:
                if not upload.filename:
                    raise InvalidRequest("Uploaded file has no name")
                stream, length = _get_stream_and_length(upload.stream, self.max_file_size)
                if stream is None or length > self.max_file_size:
                    raise FileTooLarge(
                        f"{upload.filename} exceeds {self.max_file_size} bytes"
                    )
                prepared.append((upload, stream, length))

            stored = []
            try:
                for upload, stream, length in prepared:
                    name = build_stored_name(upload.filename)
                    content_type = upload.content_type or _guess_content_type(name)
                    self._put(name, stream, length, content_type)
                    stored.append(name)
            except Exception:
                self.discard(stored)
                raise
            return stored
        finally:
            # Spool files are ours; the caller's own streams are left open.
            for upload, stream, _ in prepared:
                if stream is not upload.stream:
                    stream.close()

    def discard(self, names):
        """Remove files that never became referenced by a post."""
        for name in names:
            try:
                self.delete(name)
            except (AttachmentNotFound, StorageIOFailure) as e:
                logger.warning("Could not discard unreferenced attachment %s: %s", name, e)

    def _put(self, name, stream, length, content_type):
        raise NotImplementedError

    def resolve(self, name) -> StoredMedia:
        raise NotImplementedError

    def iter_bytes(self, name, chunk_size: int):
        raise NotImplementedError

    def delete(self, name):
        raise NotImplementedError


class LocalMediaStore(MediaStore):
    def __init__(self, root: str, max_files: int, max_file_size: int):
        super().__init__(max_files, max_file_size)
        self.root = os.path.realpath(root)

    def _path_for(self, name) -> str:
        if not is_safe_name(name):
            raise AttachmentNotFound()
        path = os.path.realpath(os.path.join(self.root, name))
        if os.path.dirname(path) != self.root:
            raise AttachmentNotFound()
        return path

    def _put(self, name, stream, length, content_type):
        path = self._path_for(name)
        try:
            os.makedirs(self.root, exist_ok=True)
            # "x" refuses to clobber an existing name.
            with open(path, "xb") as fh:
                shutil.copyfileobj(stream, fh, COPY_CHUNK_SIZE)
        except FileExistsError as e:
            raise StorageIOFailure(f"Stored name collision for {name}") from e
        except OSError as e:
            with suppress(OSError):
                os.unlink(path)
            logger.exception("Failed to store attachment %s", name)
            raise StorageIOFailure("Media storage is unavailable") from e

    def resolve(self, name) -> StoredMedia:
        path = self._path_for(name)
        try:
            st = os.stat(path)
        except FileNotFoundError as e:
            raise AttachmentNotFound() from e
        except OSError as e:
            raise StorageIOFailure("Media storage is unavailable") from e

        if not stat.S_ISREG(st.st_mode):
            raise AttachmentNotFound()

        return StoredMedia(
            name=name,
            content_type=_guess_content_type(name),
            size=st.st_size,
            etag=f"{st.st_mtime_ns:x}-{st.st_size:x}",
            last_modified=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            path=path,
        )

    def iter_bytes(self, name, chunk_size: int):
        path = self.resolve(name).path
        try:
            fh = open(path, "rb")
        except FileNotFoundError as e:
            raise AttachmentNotFound() from e
        except OSError as e:
            raise StorageIOFailure("Media storage is unavailable") from e
        return _iter_file(fh, chunk_size)

    def delete(self, name):
        path = self._path_for(name)
        try:
            os.unlink(path)
        except FileNotFoundError as e:
            raise AttachmentNotFound() from e
        except OSError as e:
            logger.exception("Failed to delete attachment %s", name)
            raise StorageIOFailure("Media storage is unavailable") from e


def _is_media_not_found(error: S3Error) -> bool:
    return error.code in {"NoSuchKey", "NoSuchBucket", "NoSuchObject"}


class MinioMediaStore(MediaStore):
    def __init__(self, client, bucket: str, max_files: int, max_file_size: int):
        super().__init__(max_files, max_file_size)
        self.client = client
        self.bucket = bucket

    def _put(self, name, stream, length, content_type):
        if not is_safe_name(name):
            raise InvalidRequest("Invalid file name")
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
            self.client.put_object(
                bucket_name=self.bucket,
                object_name=name,
                data=stream,
                length=length,
                content_type=content_type,
            )
        except Exception as e:
            logger.exception("Failed to store attachment %s in bucket %s", name, self.bucket)
            raise StorageIOFailure("Media storage is unavailable") from e

    def _stat(self, name):
        if not is_safe_name(name):
            raise AttachmentNotFound()
        try:
            return self.client.stat_object(bucket_name=self.bucket, object_name=name)
        except S3Error as e:
            if _is_media_not_found(e):
                raise AttachmentNotFound() from e
            raise StorageIOFailure("Media storage is unavailable") from e
        except Exception as e:
            raise StorageIOFailure("Media storage is unavailable") from e

    def resolve(self, name) -> StoredMedia:
        stat_result = self._stat(name)
        return StoredMedia(
            name=name,
            content_type=getattr(stat_result, "content_type", None) or _guess_content_type(name),
            size=getattr(stat_result, "size", None),
            etag=getattr(stat_result, "etag", None),
            last_modified=getattr(stat_result, "last_modified", None),
        )

    def iter_bytes(self, name, chunk_size: int):
        if not is_safe_name(name):
            raise AttachmentNotFound()
        try:
            response = self.client.get_object(bucket_name=self.bucket, object_name=name)
        except S3Error as e:
            if _is_media_not_found(e):
                raise AttachmentNotFound() from e
            raise StorageIOFailure("Media storage is unavailable") from e
        except Exception as e:
            raise StorageIOFailure("Media storage is unavailable") from e

        def _stream():
            try:
                for chunk in response.stream(chunk_size):
                    yield chunk
            finally:
                response.close()
                response.release_conn()

        return _stream()

    def delete(self, name):
        # remove_object succeeds for missing keys, so look first.
        self._stat(name)
        try:
            self.client.remove_object(bucket_name=self.bucket, object_name=name)
        except Exception as e:
            logger.exception("Failed to delete attachment %s from bucket %s", name, self.bucket)
            raise StorageIOFailure("Media storage is unavailable") from e


def build_media_store(config) -> MediaStore:
    backend = config.get("ATTACHMENT_BACKEND", "local")
    limits = {
        "max_files": config["MAX_UPLOAD_FILES"],
        "max_file_size": config["MAX_FILE_SIZE"],
    }
    if backend == "local":
        return LocalMediaStore(config["UPLOAD_FOLDER"], **limits)
    if backend == "minio":
        return MinioMediaStore(get_minio_client(config), config["MINIO_BUCKET"], **limits)
    raise ValueError(f"Unknown ATTACHMENT_BACKEND: {backend}")
