"""dynamorepo exceptions.

This module defines the exception hierarchy for the dynamorepo library.
All custom exceptions inherit from RepositoryError, allowing users to catch
all library-specific errors with a single except clause.

Exception categories:
- RepositoryError: Base exception for all dynamorepo errors
- ValidationError: An item or argument was rejected before reaching DynamoDB
  - InvalidKeySchemaError: Repository key configuration is invalid
  - MissingKeyValueError: A key argument lacks one of the key attributes
- NotFoundError: An update targeted an item that does not exist
- RemoteOperationError: DynamoDB (or the transport to it) reported a failure

Note: DynamoDB API errors (e.g., ConditionalCheckFailedException,
ProvisionedThroughputExceededException) are never retried or swallowed. They are
re-raised as RemoteOperationError with the operation context prepended to the
original message, and the original botocore error chained as ``__cause__``.
"""

from typing import Any


class RepositoryError(Exception):
    """Base exception for all dynamorepo errors.

    Example:
        try:
            await repo.update_item({"id": "1"}, {"firstName": "Mike"})
        except RepositoryError as e:
            pass

    """


class ValidationError(RepositoryError):
    """Raised when an item fails validation before it is written.

    Upsert hooks raise this to reject an item: the write is aborted before
    any network call is made.

    Example:
        def require_birth_month(item):
            if item.get("birthMonth") is None:
                raise ValidationError(f"User with id {item.get('id')} has no birthMonth")
            return item

    """


class InvalidKeySchemaError(ValidationError):
    """Raised when a repository key schema is invalid.

    This occurs when the partition key is empty or the sort key repeats the
    partition key attribute.

    """

    def __init__(self, message: str = "Invalid key schema: no partition key found") -> None:
        super().__init__(message)


class MissingKeyValueError(ValidationError):
    """Raised when a key argument lacks a value for one of the key attributes.

    Example:
        For a repository keyed on ("id", "sort"):

        await repo.find_item({"id": "1"})
        Raises MissingKeyValueError.

    Attributes:
        attribute: The key attribute that has no value.
        table_name: The table the operation targeted.
        operation: The operation that was attempted.

    """

    def __init__(
        self,
        *,
        attribute: str,
        table_name: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.attribute = attribute
        self.table_name = table_name
        self.operation = operation

        message = f"Key value must be provided for '{attribute}'"
        if table_name:
            message = f"{message} on {table_name}"
        if operation:
            message = f"{message} in {operation} operation"
        super().__init__(message)


class NotFoundError(RepositoryError):
    """Raised when an update targets an item that does not exist.

    Only raised by update_item when the repository is configured with
    ``confirm_existence_before_update``.

    Attributes:
        table_name: The table the update targeted.
        key: The key that was not found.

    """

    def __init__(self, message: str, *, table_name: str, key: Any) -> None:
        self.table_name = table_name
        self.key = key
        super().__init__(message)


class RemoteOperationError(RepositoryError):
    """Raised when a DynamoDB call fails.

    Covers everything surfaced by the client: network errors, throttling,
    malformed expressions, missing permissions, conditional check failures.

    Attributes:
        operation: The repository operation that issued the call.
        table_name: The table the call targeted.
        error_code: The DynamoDB error code, when the service returned one.
        original_error: The exception raised by the client.

    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        table_name: str,
        error_code: str | None = None,
        original_error: BaseException | None = None,
    ) -> None:
        self.operation = operation
        self.table_name = table_name
        self.error_code = error_code
        self.original_error = original_error
        super().__init__(message)


def wrap_remote_error(
    error: Exception,
    *,
    operation: str,
    table_name: str,
    context: str,
) -> RemoteOperationError:
    """Wrap a client exception into a RemoteOperationError.

    Args:
        error: The exception raised by the DynamoDB client.
        operation: The repository operation name (e.g. "find_item").
        table_name: The target table.
        context: Human readable description of the failed call, used as the
            message prefix.

    Returns:
        A RemoteOperationError whose message is ``"<context>: <original message>"``.

    """
    error_code: str | None = None
    detail = str(error)

    response = getattr(error, "response", None)
    if isinstance(response, dict):
        error_info = response.get("Error", {})
        error_code = error_info.get("Code") or None
        detail = error_info.get("Message") or detail

    return RemoteOperationError(
        f"{context}: {detail}",
        operation=operation,
        table_name=table_name,
        error_code=error_code,
        original_error=error,
    )


__all__ = [
    "InvalidKeySchemaError",
    "MissingKeyValueError",
    "NotFoundError",
    "RemoteOperationError",
    "RepositoryError",
    "ValidationError",
    "wrap_remote_error",
]
