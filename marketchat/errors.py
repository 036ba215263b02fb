"""Error taxonomy shared by the HTTP and real-time surfaces."""


class ChatError(Exception):

    status_code = 500
    code = "error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail or self.code


class Unauthenticated(ChatError):
    status_code = 401
    code = "unauthenticated"


class Forbidden(ChatError):
    status_code = 403
    code = "forbidden"


class NotFound(ChatError):
    status_code = 404
    code = "not_found"


class InvalidArgument(ChatError):
    status_code = 400
    code = "invalid_argument"


class Conflict(ChatError):
    status_code = 409
    code = "conflict"


class Unavailable(ChatError):
    status_code = 503
    code = "unavailable"
