import re
from typing import Optional
import bleach


def sanitize_input(value: Optional[str]) -> str:
    """Clean a user-supplied free-text value before it is stored.

    - Removes NULL bytes
    - Strips HTML tags using bleach.clean(..., strip=True)
    - Collapses runs of whitespace and trims the ends
    """
    if value is None:
        return ""
    val = value.replace("\x00", "")
    val = bleach.clean(val, tags=set(), strip=True)
    val = re.sub(r"\s+", " ", val)
    return val.strip()
