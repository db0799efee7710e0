"""Async DynamoDB repositories with generated projection and update expressions."""

from dynamorepo.base import KeySchema, RepositoryOptions, UpsertHook
from dynamorepo.exceptions import (
    InvalidKeySchemaError,
    MissingKeyValueError,
    NotFoundError,
    RemoteOperationError,
    RepositoryError,
    ValidationError,
)
from dynamorepo.expressions import (
    BOOKKEEPING_FIELDS,
    CREATED_AT,
    UPDATED_AT,
    ExpressionBuilder,
    collect_attribute_names,
    rewrite_expression,
)
from dynamorepo.keys import UNSET, DynamoDBKey, Item, KeyValue
from dynamorepo.protocol import RepositoryProtocol
from dynamorepo.repository import AsyncRepository
from dynamorepo.reserved_words import RESERVED_WORDS, is_reserved_word

__all__ = [
    "BOOKKEEPING_FIELDS",
    "CREATED_AT",
    "RESERVED_WORDS",
    "UNSET",
    "UPDATED_AT",
    "AsyncRepository",
    "DynamoDBKey",
    "ExpressionBuilder",
    "InvalidKeySchemaError",
    "Item",
    "KeySchema",
    "KeyValue",
    "MissingKeyValueError",
    "NotFoundError",
    "RemoteOperationError",
    "RepositoryError",
    "RepositoryOptions",
    "RepositoryProtocol",
    "UpsertHook",
    "ValidationError",
    "collect_attribute_names",
    "is_reserved_word",
    "rewrite_expression",
]
