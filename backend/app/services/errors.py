from __future__ import annotations


class KeywordMonitorError(Exception):
    pass


class InvalidRequestError(KeywordMonitorError):
    pass


class MissingCredentialError(InvalidRequestError):
    pass


class InvalidKeywordError(KeywordMonitorError):
    pass


class ChannelNotFoundError(KeywordMonitorError):
    def __init__(self, message: str = "Channel not found") -> None:
        super().__init__(message)


class UpstreamError(KeywordMonitorError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
