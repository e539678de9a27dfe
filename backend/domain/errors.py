"""
Failure kinds raised by the postcard pipeline stages.

Each error carries a `reason` key; the pipeline turns it into a localized
status string for the user.
"""


class PostcardError(Exception):
    reason = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)


class InvalidQuery(PostcardError):
    """Input rejected before any network call."""
    reason = "invalid_query"


class PlaceNotFound(PostcardError):
    reason = "place_not_found"


class CoordinatesUnavailable(PostcardError):
    reason = "coordinates_unavailable"


class FactsUnavailable(PostcardError):
    """Non-fatal; callers continue with an empty FactSet."""
    reason = "facts_unavailable"


class ImageLoadFailure(PostcardError):
    reason = "image_load_failure"


class TransportError(PostcardError):
    """Unexpected failure while talking to a remote service."""
    reason = "transport_error"
