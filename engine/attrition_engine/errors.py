"""
Error types for the attrition engine.

Two families matter at the run boundary:
- please-reboot errors, which are the intended consequence of the controller
  killing its own host and are turned into run outcomes, never failures
- transaction errors, which carry a retryable flag consumed by
  Transaction.on_error
"""


class AttritionError(Exception):
    """Base class for attrition engine errors."""

    pass


class ConfigurationError(AttritionError):
    """Raised when attrition options are unknown or malformed."""

    pass


class PleaseRebootError(AttritionError):
    """The controller's host must restart."""

    def __init__(self, message: str = "please reboot"):
        super().__init__(message)


class PleaseRebootDeleteError(PleaseRebootError):
    """The controller's host must restart and discard its on-disk state."""

    def __init__(self, message: str = "please reboot and delete"):
        super().__init__(message)


class TransactionError(AttritionError):
    """
    Error raised by a transactional store.

    Attributes:
        code: Store-specific error code
        retryable: Whether on_error may retry the transaction
    """

    code: int = 4000
    retryable: bool = False

    def __init__(self, message: str | None = None):
        super().__init__(message or self.__class__.__name__)


class NotCommittedError(TransactionError):
    """Transaction conflicted with a concurrent write."""

    code = 1020
    retryable = True


class TransactionTooOldError(TransactionError):
    """Read version is too old to be served."""

    code = 1007
    retryable = True


class FutureVersionError(TransactionError):
    """Read version is ahead of what storage can serve yet."""

    code = 1009
    retryable = True


class OperationFailedError(TransactionError):
    """Non-retryable store failure."""

    code = 1000
    retryable = False


class ClusterClientError(AttritionError):
    """Raised when the live cluster roster cannot be fetched."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
