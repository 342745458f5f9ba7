"""Errors raised while talking to a registry.

Every error records the operation it came from so a failed build can report
where it stopped.
"""
import httpx


class RegistryError(Exception):
    """Base class for all registry errors."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class TransportError(RegistryError):
    """The request never got a usable response."""

    def __init__(self, operation: str, error: httpx.RequestError):
        super().__init__(operation, f"{type(error).__name__}: {error}")
        self.error = error


class UnexpectedStatus(RegistryError):
    """The registry answered with a status outside the expected set."""

    def __init__(self, operation: str, response: httpx.Response):
        self.status_code = response.status_code
        self.reason = response.reason_phrase
        self.body = response.text
        message = f"unexpected status {self.status_code} {self.reason}"
        if self.body:
            message = f"{message}. {self.body}"
        super().__init__(operation, message)


class ProtocolError(RegistryError):
    """A response is missing something the protocol requires."""


class DecodeError(RegistryError):
    """A response body could not be decoded into the expected shape."""


class BuildError(RegistryError):
    """A build stage failed, the cause is chained as ``__cause__``"""

    def __init__(self, stage: str, message: str):
        super().__init__(stage, message)
        self.stage = stage
