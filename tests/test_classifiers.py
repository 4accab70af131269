from __future__ import annotations

from email.message import Message
from urllib.error import HTTPError, URLError

import pytest

from resilientcall.classifiers import (
    aws_error_code,
    chain_classifiers,
    classify_aws_error,
    classify_error,
    classify_error_code,
    classify_http_error,
    classify_http_status,
)
from resilientcall.models import ErrorKind
from resilientcall.transport import HttpStatusError


class FakeClientError(Exception):
    """Shape-compatible stand-in for ``botocore.exceptions.ClientError``."""

    def __init__(self, code: str, status: int = 400, operation_name: str = "DescribeInstances") -> None:
        self.response = {
            "Error": {"Code": code, "Message": f"{code} raised"},
            "ResponseMetadata": {"HTTPStatusCode": status},
        }
        self.operation_name = operation_name
        super().__init__(f"An error occurred ({code}) when calling the {operation_name} operation")


class ThrottlingException(Exception):
    pass


class LimitExceededException(Exception):
    pass


class HTTPClientError(Exception):
    pass


class EndpointConnectionError(HTTPClientError):
    pass


class ReadTimeoutError(HTTPClientError):
    pass


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("ThrottlingException", ErrorKind.THROTTLING),
        ("TooManyRequestsException", ErrorKind.THROTTLING),
        ("ProvisionedThroughputExceededException", ErrorKind.THROTTLING),
        ("InternalServerException", ErrorKind.TRANSIENT),
        ("ServiceUnavailableException", ErrorKind.TRANSIENT),
        ("LimitExceededException", ErrorKind.RESOURCE_CONFLICT),
        ("ResourceAlreadyExistsException", ErrorKind.RESOURCE_CONFLICT),
        ("OperationInProgressException", ErrorKind.RESOURCE_CONFLICT),
        ("TransactionInProgressException", ErrorKind.RESOURCE_CONFLICT),
        ("ForbiddenException", ErrorKind.INVALID_INPUT),
        ("ValidationException", ErrorKind.INVALID_INPUT),
        ("ResourceNotFoundException", ErrorKind.INVALID_INPUT),
        ("SomethingNew", ErrorKind.UNKNOWN),
    ],
)
def test_classify_error_code(code: str, expected: ErrorKind) -> None:
    assert classify_error_code(code) is expected


def test_client_error_code_is_read_from_response() -> None:
    error = FakeClientError("ThrottlingException")

    assert aws_error_code(error) == "ThrottlingException"
    assert classify_aws_error(error) is ErrorKind.THROTTLING


def test_class_name_is_used_without_response() -> None:
    assert classify_aws_error(ThrottlingException("Rate exceeded")) is ErrorKind.THROTTLING
    assert classify_aws_error(LimitExceededException("quota")) is ErrorKind.RESOURCE_CONFLICT


def test_unknown_code_falls_back_to_http_status() -> None:
    assert classify_aws_error(FakeClientError("BrandNewError", status=503)) is ErrorKind.TRANSIENT
    assert classify_aws_error(FakeClientError("BrandNewError", status=429)) is ErrorKind.THROTTLING


def test_unknown_code_without_status_is_unknown() -> None:
    assert classify_aws_error(RuntimeError("nope")) is ErrorKind.UNKNOWN


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (429, ErrorKind.THROTTLING),
        (408, ErrorKind.TRANSIENT),
        (500, ErrorKind.TRANSIENT),
        (502, ErrorKind.TRANSIENT),
        (503, ErrorKind.TRANSIENT),
        (504, ErrorKind.TRANSIENT),
        (409, ErrorKind.RESOURCE_CONFLICT),
        (400, ErrorKind.INVALID_INPUT),
        (403, ErrorKind.INVALID_INPUT),
        (404, ErrorKind.INVALID_INPUT),
        (501, ErrorKind.UNKNOWN),
        (302, ErrorKind.UNKNOWN),
    ],
)
def test_classify_http_status(status: int, expected: ErrorKind) -> None:
    assert classify_http_status(status) is expected


def test_classify_http_error_types() -> None:
    assert classify_http_error(HttpStatusError("https://example.com", 429)) is ErrorKind.THROTTLING
    urllib_error = HTTPError("https://example.com", 503, "Service Unavailable", Message(), None)
    assert classify_http_error(urllib_error) is ErrorKind.TRANSIENT
    assert classify_http_error(URLError("connection refused")) is ErrorKind.TRANSIENT
    assert classify_http_error(TimeoutError()) is ErrorKind.TRANSIENT
    assert classify_http_error(ConnectionResetError()) is ErrorKind.TRANSIENT
    assert classify_http_error(ValueError("x")) is ErrorKind.UNKNOWN


def test_chain_returns_first_known_kind() -> None:
    classify = chain_classifiers(
        lambda _: ErrorKind.UNKNOWN,
        lambda _: ErrorKind.RESOURCE_CONFLICT,
        lambda _: ErrorKind.THROTTLING,
    )

    assert classify(RuntimeError()) is ErrorKind.RESOURCE_CONFLICT


def test_empty_chain_is_unknown() -> None:
    assert chain_classifiers()(RuntimeError()) is ErrorKind.UNKNOWN


def test_default_classifier_covers_http_and_aws() -> None:
    assert classify_error(HttpStatusError("https://example.com", 502)) is ErrorKind.TRANSIENT
    assert classify_error(FakeClientError("AccessDeniedException", status=403)) is ErrorKind.INVALID_INPUT


def test_transaction_in_progress_is_a_fatal_conflict() -> None:
    error = FakeClientError("TransactionInProgressException")

    assert classify_aws_error(error) is ErrorKind.RESOURCE_CONFLICT
    assert classify_error(error) is ErrorKind.RESOURCE_CONFLICT


@pytest.mark.parametrize("error_type", [EndpointConnectionError, ReadTimeoutError])
def test_botocore_network_errors_are_transient(error_type: type[Exception]) -> None:
    error = error_type("Could not connect to the endpoint URL")

    assert classify_aws_error(error) is ErrorKind.TRANSIENT
    assert classify_error(error) is ErrorKind.TRANSIENT
