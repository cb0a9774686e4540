import re
from typing import Optional

# sign, digits, optional fraction, optional exponent
_NUMBER_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_SKIP_CHARS = ' :"'


def extract(text: Optional[str], field_name: str) -> float:
    """
    Get a numeric value from flat quote text by searching for a key.

    Finds the first occurrence of field_name, skips spaces / colons / double quotes
    and parses the longest number at that position:
        ... "volume": "1234567" ... -> 1234567.0

    Plain substring search, no structure awareness. Missing key or no number -> 0.0
    """
    if not text or not field_name:
        return 0.0

    idx = text.find(field_name)
    if idx < 0:
        return 0.0

    pos = idx + len(field_name)
    while pos < len(text) and text[pos] in _SKIP_CHARS:
        pos += 1

    m = _NUMBER_RE.match(text, pos)
    if not m:
        return 0.0
    return float(m.group(0))
