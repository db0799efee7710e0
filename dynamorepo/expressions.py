"""Expression synthesis for DynamoDB read and write requests.

This module turns ordered field mappings into the pieces of a DynamoDB request:
projection expressions, update expressions, ExpressionAttributeNames and
ExpressionAttributeValues. Nothing here performs I/O.

Conventions:
    A field whose name is a reserved word is referenced through the alias
    ``#<field>``. A value is referenced through the placeholder ``:<field>``.
"""

import re
from collections.abc import Collection, Mapping, Sequence
from functools import lru_cache
from typing import Any

from dynamorepo.keys import Item
from dynamorepo.reserved_words import RESERVED_WORDS, is_reserved_word

CREATED_AT = "createdAt"
UPDATED_AT = "updatedAt"
BOOKKEEPING_FIELDS: tuple[str, ...] = (CREATED_AT, UPDATED_AT)

# A word not introduced by ":" (value placeholders stay out of it).
_WORD = re.compile(r"(?<!:)\b(\w+)\b")
# A word that is neither a placeholder, an alias nor a function name.
_BARE_WORD = re.compile(r"(?<![:#])\b(\w+)\b(?!\s*\()")
_ALIAS = re.compile(r"#(\w+)")


def alias_for(field: str) -> str:
    """Return the ExpressionAttributeNames alias of ``field``."""
    return f"#{field}"


def value_placeholder(field: str) -> str:
    """Return the ExpressionAttributeValues placeholder of ``field``."""
    return f":{field}"


def rewrite_expression(
    expression: str,
    item: Mapping[str, Any],
    reserved_words: Collection[str] = RESERVED_WORDS,
) -> tuple[str, Item]:
    """Prepare a caller-authored update fragment for merging with generated assignments.

    Fields of ``item`` that the fragment already references are removed from the
    returned item, so they are not assigned twice. Reserved words left bare in
    the fragment are rewritten to their alias. Placeholders (``:word``), aliases
    (``#word``) and function names (``word(``) are never touched, which makes the
    rewrite idempotent.

    Args:
        expression: The update fragment, e.g. ``"firstName = :firstName, role = :role"``.
        item: The fields the repository would otherwise assign.
        reserved_words: Upper-case reserved words.

    Returns:
        The rewritten fragment and the residual item.

    Example:
        rewrite_expression("role = :role", {"role": "admin", "country": "AU"})
        Returns ("#role = :role", {"country": "AU"}).

    """
    referenced = set(_WORD.findall(expression))
    residual = {field: value for field, value in item.items() if field not in referenced}

    def _escape(match: re.Match[str]) -> str:
        word = match.group(1)
        return alias_for(word) if is_reserved_word(word, reserved_words) else word

    return _BARE_WORD.sub(_escape, expression), residual


def collect_attribute_names(*expressions: str | None) -> dict[str, str] | None:
    """Build ExpressionAttributeNames for every alias used in ``expressions``.

    Returns None rather than an empty mapping when no alias is used: DynamoDB
    rejects an empty ExpressionAttributeNames.
    """
    names: dict[str, str] = {}
    for expression in expressions:
        if not expression:
            continue
        for field in _ALIAS.findall(expression):
            names[alias_for(field)] = field
    return names or None


class ExpressionBuilder:
    """Builds expressions for one repository configuration.

    The builder is immutable once constructed. It knows the declared projection
    (always extended with the bookkeeping fields), which of those fields need an
    alias, and which fields form the table key.

    Example:
        builder = ExpressionBuilder(projection=["id", "role"], key_fields=["id"])
        builder.projection_expression
        Returns "id, #role, createdAt, updatedAt".

    """

    def __init__(self, *, projection: Sequence[str], key_fields: Sequence[str]) -> None:
        self.key_fields: tuple[str, ...] = tuple(key_fields)
        self.projection_fields: tuple[str, ...] = tuple(
            dict.fromkeys([*projection, *BOOKKEEPING_FIELDS])
        )
        self.attribute_aliases: dict[str, str] = {
            field: alias_for(field)
            for field in self.projection_fields
            if is_reserved_word(field)
        }
        self.projection_expression = ", ".join(
            self._reference(field) for field in self.projection_fields
        )
        self._cached_projection = lru_cache(maxsize=256)(self._map_projection)

    def _reference(self, field: str) -> str:
        return self.attribute_aliases.get(field, field)

    def _map_projection(self, fields: tuple[str, ...]) -> str:
        known = [field for field in fields if field in self.projection_fields]
        return ", ".join(dict.fromkeys(self._reference(field) for field in known))

    def build_projection(self, fields: Sequence[str] | None = None) -> str:
        """Build a projection expression for a subset of the declared fields.

        Args:
            fields: Requested fields, in the order they should appear. Fields that
                were not declared are dropped. When omitted or empty, the default
                projection is returned.

        Returns:
            The projection expression. Falls back to the default projection when
            none of the requested fields is known.

        """
        if not fields:
            return self.projection_expression
        return self._cached_projection(tuple(fields)) or self.projection_expression

    def build_update_expression(self, item: Mapping[str, Any]) -> str:
        """Build the SET assignments for ``item`` (without the ``SET`` keyword).

        Key fields and createdAt are never assigned directly. createdAt is always
        written through ``if_not_exists`` so only the first write of a key sets it.
        """
        assignments = [
            f"{self._reference(field)} = {value_placeholder(field)}"
            for field in item
            if field not in self.key_fields and field != CREATED_AT
        ]
        assignments.append(
            f"{CREATED_AT} = if_not_exists({CREATED_AT}, {value_placeholder(CREATED_AT)})"
        )
        return ", ".join(assignments)

    def build_attribute_names(self, item: Mapping[str, Any]) -> dict[str, str] | None:
        """Return the aliases needed to assign the non-key fields of ``item``, or None."""
        names = {
            self.attribute_aliases[field]: field
            for field in item
            if field not in self.key_fields and field in self.attribute_aliases
        }
        return names or None

    def build_update_values(self, item: Mapping[str, Any], *, now: int) -> dict[str, Any]:
        """Build ExpressionAttributeValues matching build_update_expression.

        Args:
            item: The fields being written.
            now: Fallback for ``:createdAt`` when the item carries no createdAt.

        """
        values = {
            value_placeholder(field): value
            for field, value in item.items()
            if field not in self.key_fields
        }
        created_at = item.get(CREATED_AT)
        values[value_placeholder(CREATED_AT)] = now if created_at is None else created_at
        return values

    @staticmethod
    def build_search_values(values: Mapping[str, Any]) -> dict[str, Any]:
        """Map caller values to placeholders, no key or timestamp handling.

        Keys may be field names (``"country"``) or placeholders (``":country"``).
        """
        return {
            name if name.startswith(":") else value_placeholder(name): value
            for name, value in values.items()
        }


__all__ = [
    "BOOKKEEPING_FIELDS",
    "CREATED_AT",
    "UPDATED_AT",
    "ExpressionBuilder",
    "alias_for",
    "collect_attribute_names",
    "rewrite_expression",
    "value_placeholder",
]
