class WalletTrackerError(Exception):
    """Base class for errors surfaced by the service layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInputError(WalletTrackerError, ValueError):
    """Malformed address, hash or pagination value; raised before any I/O."""

    status_code = 400


class TransactionNotFoundError(WalletTrackerError):
    """The hash is neither cached nor known to the chain."""

    status_code = 404


class UpstreamError(WalletTrackerError):
    """Chain or store failure. ``message`` is safe to show; the cause is chained."""

    status_code = 500
