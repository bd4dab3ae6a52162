# marketplace/services/lifecycle/errors.py
"""Listing lifecycle exceptions."""


class ListingLifecycleError(Exception):
    """Base class for lifecycle errors rendered to API clients."""

    status_code = 500

    def __init__(self, message: str, details: str | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ListingNotFoundError(ListingLifecycleError, LookupError):
    """The requested listing does not exist."""

    status_code = 404

    def __init__(self, listing_id: str):
        super().__init__("Listing not found", details=f"No listing with id '{listing_id}'")
        self.listing_id = listing_id


class InvalidActionError(ListingLifecycleError, ValueError):
    """An override action or reason token was not recognised."""

    status_code = 400
