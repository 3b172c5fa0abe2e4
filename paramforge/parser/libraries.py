"""Detection of well-known libraries referenced by include/use statements."""

from __future__ import annotations

import re

from paramforge.config import KNOWN_LIBRARIES

_INCLUDE_RE = re.compile(r"\b(?:include|use)\s*<([^>]+)>")


def detect_libraries(source_text: str) -> list[str]:
    """Return known library names used by *source_text*, in first-use order."""
    detected: list[str] = []
    for match in _INCLUDE_RE.finditer(source_text):
        path = match.group(1).strip()
        for library in KNOWN_LIBRARIES:
            if path.startswith(f"{library}/") and library not in detected:
                detected.append(library)
    return detected
