"""Flattening of tag lists into a single delimited column.

Tags are joined with commas. A comma or backslash inside a tag is escaped
with a backslash so the encoding round-trips exactly. An empty list is
stored as NULL, which keeps it apart from a list holding one empty tag.
"""

from collections.abc import Iterable

DELIMITER = ","
ESCAPE = "\\"


def encode_tags(tags: Iterable[str]) -> str | None:
    """Join tags into one string, escaping delimiters.

    Returns None for an empty list.
    """
    escaped = [
        tag.replace(ESCAPE, ESCAPE + ESCAPE).replace(DELIMITER, ESCAPE + DELIMITER)
        for tag in tags
    ]
    if not escaped:
        return None
    return DELIMITER.join(escaped)


def decode_tags(value: str | None) -> list[str]:
    """Split a string produced by ``encode_tags`` back into tags.

    A NULL column decodes to an empty list; an empty string is the
    single empty tag.
    """
    if value is None:
        return []

    tags: list[str] = []
    current: list[str] = []
    chars = iter(value)
    for char in chars:
        if char == ESCAPE:
            # Trailing escape is kept literally
            current.append(next(chars, ESCAPE))
        elif char == DELIMITER:
            tags.append("".join(current))
            current = []
        else:
            current.append(char)
    tags.append("".join(current))
    return tags
