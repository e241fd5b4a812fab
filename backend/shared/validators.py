"""Parsing helpers for list-valued settings read from the environment."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from pydantic_settings import EnvSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo


def _non_empty(items: list[str], *, allow_empty: bool) -> list[str]:
    if not allow_empty and not items:
        raise ValueError("String list value must not be empty")
    return items


def parse_string_list(value: str | list[str], *, allow_empty: bool = False) -> list[str]:
    """Parse a string list given as a list, a JSON array, or comma-separated text.

    A blank string is always rejected. Empty lists are rejected unless
    allow_empty is set.
    """
    if isinstance(value, list):
        return _non_empty(value, allow_empty=allow_empty)

    stripped = value.strip()
    if not stripped:
        raise ValueError("String list value must not be empty")

    if stripped.startswith("["):
        try:
            parsed = json.loads(stripped)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON array: {e}") from e
        if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
            raise ValueError("JSON value must be an array of strings")
        return _non_empty(parsed, allow_empty=allow_empty)

    return _non_empty([item.strip() for item in stripped.split(",") if item.strip()], allow_empty=allow_empty)


_STRING_LIST_FIELDS = {"cors_origins", "extra_banned_words"}


class StringListEnvSettingsSource(EnvSettingsSource):
    """Hand string-list env vars to field validators untouched.

    pydantic-settings JSON-decodes list fields before validators run, which
    rejects the comma-separated form parse_string_list accepts.
    """

    def prepare_field_value(
        self,
        field_name: str,
        field: FieldInfo,
        value: Any,  # noqa: ANN401
        value_is_complex: bool,  # noqa: FBT001
    ) -> Any:  # noqa: ANN401
        if field_name in _STRING_LIST_FIELDS and isinstance(value, str):
            return value
        return super().prepare_field_value(field_name, field, value, value_is_complex)
