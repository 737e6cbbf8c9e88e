"""
Error taxonomy for the PortPro sync pipeline.
"""


class SyncError(Exception):
    """Base class for failures while ingesting a vendor event."""

    kind = 'unknown'


class SignatureInvalid(SyncError):
    """Raised when a webhook signature does not match the shared secret."""

    kind = 'signature_invalid'


class DuplicateEvent(SyncError):
    """Raised when an event has already been processed."""

    kind = 'duplicate'


class MappingError(SyncError):
    """Raised when a vendor payload cannot be translated."""

    kind = 'mapping'


class PersistError(SyncError):
    """Raised when a mapped record cannot be written."""

    kind = 'persist'


class VendorUnavailable(SyncError):
    """Raised when the PortPro API cannot be reached or rejects the request."""

    kind = 'vendor_unavailable'


class StoreUnavailable(SyncError):
    """Raised when a backing store or the task broker cannot accept an event."""

    kind = 'store_unavailable'
