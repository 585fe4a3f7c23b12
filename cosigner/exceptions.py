"""
Cosigner Exceptions

Custom exception classes for the authorization engine and wallet facade.
"""


class CosignerException(Exception):
    """Base exception for cosigner."""
    pass


class InvalidKeyError(CosignerException):
    """Invalid cryptographic key."""
    pass


class InvalidAddressError(CosignerException):
    """Invalid address format."""
    pass


class MalformedSignatureError(CosignerException):
    """Signature bytes are structurally invalid (length, recovery id, scalar range)."""
    pass


class ConfigurationError(CosignerException):
    """Configuration error."""
    pass


class AuthorizationError(CosignerException):
    """
    An operation was rejected by the authorization pipeline.

    No state was changed; the sequence id was not consumed.
    """

    def __init__(self, reason, message: str = ""):
        self.reason = reason
        super().__init__(message or f"Authorization rejected: {reason.value}")


class BatchLengthMismatchError(CosignerException):
    """Recipient and value lists are empty, of different lengths, or too long."""
    pass


class ExecutionError(CosignerException):
    """
    Transfer failed after authorization.

    The sequence id is already consumed; a retry needs the next sequence id.
    """
    pass


class InsufficientFundsError(ExecutionError):
    """Wallet balance does not cover the requested value(s)."""
    pass


class RecipientTransferError(ExecutionError):
    """A recipient rejected or could not receive a transfer."""

    def __init__(self, recipient: str, index: int = 0, message: str = ""):
        self.recipient = recipient
        self.index = index
        super().__init__(message or f"Transfer to {recipient} (index {index}) failed")
