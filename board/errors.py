"""Error kinds raised by the board core.

Each error carries the HTTP status it maps to, so the web layer can turn any
of them into a JSON response without knowing which one it got.
"""


class BoardError(Exception):
    status_code = 500
    message = "Internal error"

    def __init__(self, message=None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvalidRequest(BoardError):
    status_code = 400
    message = "Invalid request"


class UsernameTaken(BoardError):
    status_code = 400
    message = "Username already exists"


class InvalidCredentials(BoardError):
    status_code = 401
    message = "Invalid username or password"


class Unauthorized(BoardError):
    status_code = 401
    message = "You must be logged in"


class Forbidden(BoardError):
    status_code = 403
    message = "You can only modify your own posts"


class InvalidIndex(BoardError):
    status_code = 400
    message = "Invalid post index"


class PostNotFound(BoardError):
    status_code = 404
    message = "Post not found"


class NoFilesProvided(BoardError):
    status_code = 400
    message = "No files uploaded"


class TooManyFiles(BoardError):
    status_code = 400
    message = "Too many files"


class FileTooLarge(BoardError):
    status_code = 413
    message = "File too large"


class AttachmentNotFound(BoardError):
    status_code = 404
    message = "File not found"


class Conflict(BoardError):
    status_code = 409
    message = "Post changed since it was read"


class StorageIOFailure(BoardError):
    status_code = 503
    message = "Storage is unavailable"
