"""Error types shared by the REST routes, the queue engine and the search provider."""
from typing import Optional


class SongQueueError(Exception):
    status_code = 500
    type = "internal_error"

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message, "type": self.type}


class NotFound(SongQueueError):
    status_code = 404
    type = "not_found"


class Forbidden(SongQueueError):
    status_code = 403
    type = "forbidden"


class InvalidInput(SongQueueError):
    status_code = 400
    type = "invalid_input"


class UpstreamUnavailable(SongQueueError):
    status_code = 502
    type = "search_error"


class RateLimited(UpstreamUnavailable):
    status_code = 429
    type = "rate_limit"

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.", retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.retry_after is not None:
            # Whole seconds, rounded up
            data["retry_after"] = int(-(-self.retry_after // 1))
        return data
