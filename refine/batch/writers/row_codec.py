"""
Row codec: encodes one record as a tab-delimited output line.

Output is write-only; nothing is ever decoded with this module. Because every
tab, newline and carriage return inside a field is replaced with a space, a
plain split on tab always recovers the columns of a written line.
"""

import re
from typing import Sequence

DELIMITER = "\t"
LINE_END = "\n"

_CONTROL_CHARS = re.compile(r"[\t\n\r]")


def clean_field(value: str | None) -> str | None:
    """
    Escape a single field.

    Returns:
        The field with control characters replaced by spaces and trimmed,
        or None if nothing is left
    """
    if value is None:
        return None
    cleaned = _CONTROL_CHARS.sub(" ", value).strip()
    return cleaned or None


def tab_row(fields: Sequence[str | None]) -> str:
    """
    Encode a sequence of field values as one newline-terminated line.

    Absent fields are written as empty strings. The input is not modified.

    Args:
        fields: Ordered field values

    Returns:
        Tab-delimited line ending in a single newline
    """
    cleaned = (clean_field(value) for value in fields)
    return DELIMITER.join(value if value is not None else "" for value in cleaned) + LINE_END
