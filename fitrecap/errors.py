"""Failure taxonomy shared by the sync path and the presentation boundary."""

NEEDS_SIGN_IN = "needs_sign_in"
RETRY = "retry"


class FitRecapError(RuntimeError):
    category = RETRY


class NotFound(FitRecapError):
    """No stored owner or credential for the requested id."""

    category = NEEDS_SIGN_IN


class SyncFailed(FitRecapError):
    """Fetching from Strava did not complete. Rows upserted so far are kept."""


class AuthenticationExpired(SyncFailed):
    """The access token could not be refreshed; the athlete must sign in again."""

    category = NEEDS_SIGN_IN


class UpstreamUnavailable(SyncFailed):
    """Transient Strava failure (network, non-2xx, rate limit)."""


def user_message(error: FitRecapError) -> str:
    if error.category == NEEDS_SIGN_IN:
        return "Please sign in with Strava again."
    return "Strava is unavailable right now. Please retry in a moment."
