"""Map service-specific errors onto ``ErrorKind``.

AWS SDKs raise one exception class per service error code
(``ThrottlingException``, ``LimitExceededException`` ...). Rather than
mirroring that hierarchy, the classifiers here look at the error code, or
failing that the HTTP status, and return a single ``ErrorKind``.

Quota style errors (``LimitExceededException``, ``ServiceQuotaExceededException``)
are resource conflicts, not throttling: they do not clear up by waiting a
few seconds, so they are fatal under the default policy.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from urllib.error import HTTPError, URLError

from resilientcall.models import ErrorKind
from resilientcall.transport import HttpStatusError

Classifier = Callable[[BaseException], ErrorKind]

THROTTLING_CODES: frozenset[str] = frozenset(
    {
        "Throttling",
        "ThrottlingException",
        "ThrottledException",
        "TooManyRequestsException",
        "RequestLimitExceeded",
        "RequestThrottled",
        "RequestThrottledException",
        "ProvisionedThroughputExceededException",
        "SlowDown",
        "BandwidthLimitExceeded",
        "PriorRequestNotComplete",
        "EC2ThrottledException",
    }
)

TRANSIENT_CODES: frozenset[str] = frozenset(
    {
        "InternalError",
        "InternalFailure",
        "InternalServerError",
        "InternalServerException",
        "InternalServiceError",
        "ServiceUnavailable",
        "ServiceUnavailableException",
        "ServiceException",
        "RequestTimeout",
        "RequestTimeoutException",
        "IDPCommunicationError",
    }
)

RESOURCE_CONFLICT_CODES: frozenset[str] = frozenset(
    {
        "LimitExceededException",
        "LimitExceeded",
        "ServiceQuotaExceededException",
        "ResourceInUseException",
        "ResourceAlreadyExistsException",
        "AlreadyExistsException",
        "EntityAlreadyExists",
        "ConflictException",
        "ConcurrentModificationException",
        "OperationInProgressException",
        "OperationAbortedException",
        "TransactionInProgressException",
    }
)

INVALID_INPUT_CODES: frozenset[str] = frozenset(
    {
        "ValidationException",
        "ValidationError",
        "InvalidParameterException",
        "InvalidParameterValue",
        "InvalidParameterValueException",
        "InvalidRequestException",
        "InvalidInputException",
        "BadRequestException",
        "MalformedPolicyDocument",
        "AccessDenied",
        "AccessDeniedException",
        "ForbiddenException",
        "UnauthorizedException",
        "UnrecognizedClientException",
        "ExpiredTokenException",
        "ResourceNotFoundException",
        "NotFoundException",
        "NoSuchEntity",
        "NoSuchKey",
        "NoSuchBucket",
    }
)

_CODE_TABLE: tuple[tuple[frozenset[str], ErrorKind], ...] = (
    (THROTTLING_CODES, ErrorKind.THROTTLING),
    (TRANSIENT_CODES, ErrorKind.TRANSIENT),
    (RESOURCE_CONFLICT_CODES, ErrorKind.RESOURCE_CONFLICT),
    (INVALID_INPUT_CODES, ErrorKind.INVALID_INPUT),
)

_TRANSIENT_STATUSES = frozenset({408, 500, 502, 503, 504})

# botocore network failures carry no response; they are matched by class name.
NETWORK_ERROR_NAMES: frozenset[str] = frozenset(
    {
        "EndpointConnectionError",
        "ConnectionClosedError",
        "ConnectTimeoutError",
        "ReadTimeoutError",
        "ProxyConnectionError",
        "HTTPClientError",
    }
)


def classify_error_code(code: str) -> ErrorKind:
    normalized = code.strip()
    for codes, kind in _CODE_TABLE:
        if normalized in codes:
            return kind
    return ErrorKind.UNKNOWN


def classify_http_status(status: int) -> ErrorKind:
    if status == 429:
        return ErrorKind.THROTTLING
    if status in _TRANSIENT_STATUSES:
        return ErrorKind.TRANSIENT
    if status == 409:
        return ErrorKind.RESOURCE_CONFLICT
    if 400 <= status < 500:
        return ErrorKind.INVALID_INPUT
    return ErrorKind.UNKNOWN


def _client_error_response(error: BaseException) -> Mapping[str, object]:
    response = getattr(error, "response", None)
    if isinstance(response, Mapping):
        return response
    return {}


def aws_error_code(error: BaseException) -> str:
    """Error code of a botocore-style ``ClientError``, else the class name."""
    details = _client_error_response(error).get("Error")
    if isinstance(details, Mapping):
        code = details.get("Code")
        if isinstance(code, str) and code.strip():
            return code.strip()
    return type(error).__name__


def classify_aws_error(error: BaseException) -> ErrorKind:
    if any(cls.__name__ in NETWORK_ERROR_NAMES for cls in type(error).__mro__):
        return ErrorKind.TRANSIENT
    kind = classify_error_code(aws_error_code(error))
    if kind is not ErrorKind.UNKNOWN:
        return kind
    metadata = _client_error_response(error).get("ResponseMetadata")
    if isinstance(metadata, Mapping):
        status = metadata.get("HTTPStatusCode")
        if isinstance(status, int):
            return classify_http_status(status)
    return ErrorKind.UNKNOWN


def classify_http_error(error: BaseException) -> ErrorKind:
    if isinstance(error, HttpStatusError):
        return classify_http_status(error.status)
    if isinstance(error, HTTPError):
        return classify_http_status(error.code)
    if isinstance(error, (URLError, TimeoutError, ConnectionError)):
        return ErrorKind.TRANSIENT
    return ErrorKind.UNKNOWN


def chain_classifiers(*classifiers: Classifier) -> Classifier:
    """First classifier with a non-``UNKNOWN`` answer wins."""

    def classify(error: BaseException) -> ErrorKind:
        for classifier in classifiers:
            kind = classifier(error)
            if kind is not ErrorKind.UNKNOWN:
                return kind
        return ErrorKind.UNKNOWN

    return classify


classify_error = chain_classifiers(classify_http_error, classify_aws_error)
