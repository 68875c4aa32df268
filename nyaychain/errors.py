"""Error taxonomy shared by the engine, the reports and the HTTP layer.

Each error carries the HTTP status it maps to; the app registers a single
handler that renders ``{"detail": message}`` like FastAPI's own HTTPException.
"""


class NyayChainError(Exception):
    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message


class ValidationFailed(NyayChainError):
    status_code = 400


class Unauthenticated(NyayChainError):
    status_code = 401

    def __init__(self, message: str = "Not authenticated"):
        super().__init__(message)


class Forbidden(NyayChainError):
    status_code = 403

    def __init__(self, message: str = "You do not have permission to perform this action"):
        super().__init__(message)


class NotFound(NyayChainError):
    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)
