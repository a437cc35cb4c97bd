"""Identifier helpers for deriving column and table names."""

import re

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def to_snake_case(name: str) -> str:
    """Convert CamelCase to snake_case, keeping acronyms together.

    Examples:
        >>> to_snake_case("ID")
        'id'
        >>> to_snake_case("UserID")
        'user_id'
        >>> to_snake_case("LatencyMs")
        'latency_ms'
        >>> to_snake_case("HTTPStatus")
        'http_status'
    """
    out: list[str] = []
    for i, ch in enumerate(name):
        if ch.isupper():
            if i > 0:
                prev = name[i - 1]
                # Boundary after a lower/digit, or where an acronym meets a word
                if prev.islower() or prev.isdigit():
                    out.append("_")
                elif prev.isupper() and i + 1 < len(name) and name[i + 1].islower():
                    out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out)


def pluralize(word: str) -> str:
    """English plural good enough for table names.

    Examples:
        >>> pluralize("user")
        'users'
        >>> pluralize("category")
        'categories'
        >>> pluralize("address")
        'addresses'
    """
    if word.endswith("y") and len(word) > 1 and word[-2] not in "aeiou":
        return word[:-1] + "ies"
    if word.endswith(("s", "x", "z", "ch", "sh")):
        return word + "es"
    return word + "s"


def is_identifier(name: str) -> bool:
    """True for a plain SQL identifier (letters, digits, underscore)."""
    return bool(_IDENTIFIER.match(name))
