from __future__ import annotations

import re
from typing import Any


def normalize_key(value: Any) -> str:
    if value is None:
        return ""
    text = value if isinstance(value, str) else str(value)
    if not text:
        return ""
    cleaned = text.replace("\ufeff", "").replace("\u00a0", " ").strip()
    cleaned = re.sub(r"\s+", " ", cleaned)
    return cleaned.casefold()
