"""Failure kinds raised by the SIMKL authorization and sync flows."""

from __future__ import annotations


class SimklError(Exception):
    """Base class carrying a user-facing message and an HTTP status."""

    http_status: int = 400
    default_message = "SIMKL request failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingPreAuth(SimklError):
    default_message = (
        "No PreAuth data found. Please go back to /configure and try logging in again."
    )


class ClientIdMissing(SimklError):
    default_message = (
        "No Client ID found. Please make sure you entered a valid Client ID."
    )


class ExchangeFailed(SimklError):
    http_status = 502
    default_message = "Couldn't validate SIMKL code. Please try again."


class ProviderError(SimklError):
    def __init__(self, error: object):
        self.error = error
        super().__init__(f"SIMKL API error: {error}")


class NoAccessToken(SimklError):
    default_message = "No Access Token received from SIMKL."


class SyncPreconditionFailed(SimklError):
    http_status = 409
    default_message = "No SIMKL credentials stored for this profile."


class SyncFailed(SimklError):
    http_status = 502
    default_message = "Failed to fetch data from Simkl API!"
