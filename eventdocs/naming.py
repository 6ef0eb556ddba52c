"""String helpers for display names, file names and topic segments."""

from __future__ import annotations

import re

_UNSAFE_FILE_CHARS = re.compile(r'[<>\[\],\s`|:"/\\?*\x00-\x1f]')
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


def safe_file_name(value: str) -> str:
    """Convert a (possibly generic) type name into a file-system safe name.

    ``Page[shop.Item]`` becomes ``Page_shop.Item_`` and
    ``dict[str, int]`` becomes ``dict_str__int_``.
    """
    if not value:
        return "default"
    result = _UNSAFE_FILE_CHARS.sub("_", value)
    if not result.strip("_ "):
        return "default"
    return result


def display_name(name: str) -> str:
    """Split PascalCase into space separated words (``CashierCreated`` -> ``Cashier Created``)."""
    if not name:
        return name
    pieces = []
    for index, char in enumerate(name):
        if index > 0 and char.isupper() and name[index - 1].islower():
            pieces.append(" ")
        pieces.append(char)
    return "".join(pieces)


def capitalize_first(value: str) -> str:
    if not value or value[0].isupper():
        return value
    return value[0].upper() + value[1:]


def kebab_case(name: str) -> str:
    """``InvoicePaid`` -> ``invoice-paid``; underscores become dashes."""
    if not name:
        return name
    spaced = _CAMEL_BOUNDARY.sub("-", name.replace("_", "-"))
    return re.sub(r"-+", "-", spaced).strip("-").lower()


def pluralize(word: str) -> str:
    """Apply simple English pluralisation to the last word of a topic."""
    if not word:
        return word
    lower = word.lower()
    if lower.endswith("s"):
        return word
    if lower.endswith("y") and len(word) > 1 and lower[-2] not in "aeiou":
        return word[:-1] + "ies"
    if lower.endswith(("x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


__all__ = ["capitalize_first", "display_name", "kebab_case", "pluralize", "safe_file_name"]
