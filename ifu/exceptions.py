class ApiError(Exception):
    """Remote service answered with an unexpected status code."""

    def __init__(self, method: str, path: str, status_code: int, body: str = "") -> None:
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"{method} {path} failed: status={status_code} body={body}")


class UploadRejected(ApiError):
    """Asset upload was not accepted by the server."""


class SetupError(Exception):
    """Run cannot start: missing credentials, bad root, or unreachable server."""


class UploadCancelled(Exception):
    """File was never dispatched because the run was cancelled."""
