"""Classification of remote service errors.

botocore reports every service failure as a ClientError carrying an
error code and a free-form message. Callers in this package never match
on those strings directly: the client wrappers classify each failure
once into an ErrorKind and the reconcilers branch on the kind.
"""

from enum import Enum
from botocore.exceptions import ClientError


class ErrorKind(Enum):
    """Structured kind of a remote service failure."""

    NOT_FOUND = "NOT_FOUND"
    ALREADY_EXISTS = "ALREADY_EXISTS"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    COOLDOWN_RESTRICTED = "COOLDOWN_RESTRICTED"
    OTHER = "OTHER"


NOT_FOUND_CODES = frozenset({
    'ResourceNotFoundException',
    'NoSuchEntity',
    'NoSuchEntityException',
    'NotFoundException',
})

ALREADY_EXISTS_CODES = frozenset({
    'EntityAlreadyExists',
    'EntityAlreadyExistsException',
    'ResourceAlreadyExistsException',
})

QUOTA_EXCEEDED_CODES = frozenset({
    'ServiceQuotaExceededException',
    'LimitExceeded',
    'LimitExceededException',
})

COOLDOWN_MARKERS = ('cool down', 'cooldown', 'cool-down')


def error_code(error: ClientError) -> str:
    """Get the service error code of a ClientError."""
    return error.response.get('Error', {}).get('Code', '')


def error_message(error: ClientError) -> str:
    """Get the service error message of a ClientError, or its string form."""
    return error.response.get('Error', {}).get('Message') or str(error)


def classify_client_error(error: ClientError) -> ErrorKind:
    """Classify a ClientError into an ErrorKind.

    The cooldown check runs first: Resource Explorer reports a promotion
    attempted inside the cooldown window with a generic conflict or
    validation code, so only the message identifies it.

    Args:
        error: The botocore ClientError to classify

    Returns:
        ErrorKind describing the failure
    """
    code = error_code(error)
    message = error_message(error).lower()

    if any(marker in message for marker in COOLDOWN_MARKERS):
        return ErrorKind.COOLDOWN_RESTRICTED
    if code in QUOTA_EXCEEDED_CODES:
        return ErrorKind.QUOTA_EXCEEDED
    if code in ALREADY_EXISTS_CODES or 'already exists' in message:
        return ErrorKind.ALREADY_EXISTS
    if code in NOT_FOUND_CODES:
        return ErrorKind.NOT_FOUND
    return ErrorKind.OTHER


class RemoteServiceError(Exception):
    """Base exception for classified remote service failures.

    Attributes:
        kind: Classified ErrorKind
        operation: Name of the API operation that failed
        region: Region the call was made in, if any
    """

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.OTHER,
                 operation: str = '', region: str = '') -> None:
        super().__init__(message)
        self.kind = kind
        self.operation = operation
        self.region = region

    @classmethod
    def from_client_error(cls, error: ClientError, operation: str,
                          region: str = '') -> 'RemoteServiceError':
        """Build a classified error from a botocore ClientError."""
        location = f" in {region}" if region else ""
        return cls(
            f"{operation} failed{location}: {error_message(error)}",
            kind=classify_client_error(error),
            operation=operation,
            region=region,
        )

    @property
    def is_not_found(self) -> bool:
        return self.kind is ErrorKind.NOT_FOUND

    @property
    def is_already_exists(self) -> bool:
        return self.kind is ErrorKind.ALREADY_EXISTS
