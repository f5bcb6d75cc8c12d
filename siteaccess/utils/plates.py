# siteaccess/utils/plates.py
"""License-plate text helpers. A normalized plate is the correlation key across ledgers."""

import re
from typing import Optional

_WHITESPACE = re.compile(r"\s+")


def normalize_plate(plate: Optional[str]) -> str:
    """' kda 123x ' → 'KDA123X'. None/blank → ''."""
    if plate is None:
        return ""
    return _WHITESPACE.sub("", str(plate)).upper()
