class ErrorResponse(Exception):
    """Error carrying the HTTP status it should be reported with."""

    status_code = 500

    def __init__(self, message: str, status_code: int = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class BadRequest(ErrorResponse):
    status_code = 400


class Unauthorized(ErrorResponse):
    status_code = 401


class Forbidden(ErrorResponse):
    status_code = 403


class NotFound(ErrorResponse):
    status_code = 404


class ServiceUnavailable(ErrorResponse):
    status_code = 503
