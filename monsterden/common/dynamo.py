"""Helpers shared by the DynamoDB-backed stores."""

from __future__ import annotations

from typing import Any, NoReturn

from botocore.exceptions import BotoCoreError, ClientError

from monsterden.common.errors import TransientStorageError

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "TransactionConflictException",
        "InternalServerError",
        "ServiceUnavailable",
    }
)


def error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


def is_conditional_failure(exc: BaseException) -> bool:
    return isinstance(exc, ClientError) and error_code(exc) == CONDITIONAL_CHECK_FAILED


def translate_error(exc: BaseException) -> BaseException:
    """Return the exception callers should see for a boto3 failure.

    Throttling and transport errors become :class:`TransientStorageError` so
    idempotent callers can retry them; everything else is returned unchanged.
    """
    if isinstance(exc, BotoCoreError):
        return TransientStorageError(str(exc))
    if isinstance(exc, ClientError) and error_code(exc) in TRANSIENT_ERROR_CODES:
        return TransientStorageError(error_code(exc))
    return exc


def raise_storage_error(exc: BaseException) -> NoReturn:
    """Re-raise a boto3 failure in the form returned by :func:`translate_error`."""
    translated = translate_error(exc)
    if translated is exc:
        raise exc
    raise translated from exc


def as_int(value: Any, default: int = 0) -> int:
    """DynamoDB returns numbers as ``Decimal``; the engine works in ints."""
    if value is None:
        return default
    return int(value)


def dynamodb_table(name: str) -> Any:
    import boto3  # type: ignore

    return boto3.resource("dynamodb").Table(name)


__all__ = [
    "CONDITIONAL_CHECK_FAILED",
    "TRANSIENT_ERROR_CODES",
    "error_code",
    "is_conditional_failure",
    "translate_error",
    "raise_storage_error",
    "as_int",
    "dynamodb_table",
]
