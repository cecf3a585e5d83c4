"""Name-case helpers used to derive column and JSON names from field names."""

import re
from functools import lru_cache

# "HTTPServer" -> "HTTP_Server"
_ACRONYM_BOUNDARY_RE = re.compile(r"([A-Z\d]+)([A-Z][a-z])")
# "fooBar" -> "foo_Bar"
_LOWER_UPPER_BOUNDARY_RE = re.compile(r"([a-z\d])([A-Z])")
_SEPARATOR_RE = re.compile(r"[-\s]+")
_MULTIPLE_UNDERSCORE_RE = re.compile(r"__+")

__all__ = (
    "camelize",
    "snake_case",
    "unquote",
)


@lru_cache(maxsize=512)
def camelize(string: str) -> str:
    """Convert a snake_case name to camelCase.

    Args:
        string: The string to convert.

    Returns:
        The converted string. Leading underscores are dropped.
    """
    words = [word for word in string.split("_") if word]
    if not words:
        return string
    return words[0] + "".join(word[:1].upper() + word[1:] for word in words[1:])


@lru_cache(maxsize=512)
def snake_case(string: str) -> str:
    """Convert a camelCase or PascalCase name to snake_case.

    Acronyms stay together ("userID" becomes "user_id", "HTTPServer" becomes
    "http_server"). Strings already in snake_case are returned unchanged.

    Args:
        string: The string to convert.

    Returns:
        The snake_case version of the string.
    """
    if not string:
        return ""
    s = _SEPARATOR_RE.sub("_", string.strip())
    s = _ACRONYM_BOUNDARY_RE.sub(r"\1_\2", s)
    s = _LOWER_UPPER_BOUNDARY_RE.sub(r"\1_\2", s)
    s = _MULTIPLE_UNDERSCORE_RE.sub("_", s)
    return s.lower()


def unquote(identifier: str) -> str:
    """Strip whitespace, one trailing comma and one pair of surrounding double quotes."""
    identifier = identifier.strip().removesuffix(",")
    if len(identifier) >= 2 and identifier[0] == '"' and identifier[-1] == '"':
        identifier = identifier[1:-1]
    return identifier
