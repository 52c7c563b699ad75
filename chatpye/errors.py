from typing import Dict, Optional


class ChatPyeError(Exception):
    """Base error carrying the HTTP status the endpoints answer with."""

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_payload(self) -> Dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidRequestError(ChatPyeError):
    status_code = 400


class MissingCredentialError(ChatPyeError):
    status_code = 500


class VideoNotFoundError(ChatPyeError):
    status_code = 404


class UpstreamError(ChatPyeError):
    status_code = 500


class RateLimitedError(ChatPyeError):
    status_code = 429

    def __init__(self, message: str, retry_after: float = 10.0):
        super().__init__(message)
        self.retry_after = retry_after

    def to_payload(self) -> Dict:
        payload = super().to_payload()
        payload["retryAfter"] = int(round(self.retry_after))
        return payload
