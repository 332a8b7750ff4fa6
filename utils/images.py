# -*- coding: utf-8 -*-
from __future__ import annotations

import re
from typing import Optional, Tuple

_DATA_URI = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)


def parse_data_uri(value: str) -> Optional[Tuple[str, str]]:
    """Return (mime_type, base64_payload) for an image data-URI, else None."""
    if not isinstance(value, str):
        return None
    m = _DATA_URI.match(value.strip())
    if not m:
        return None
    return m.group(1), m.group(2)


def is_http_url(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))


def normalize_image_url(value: str) -> str:
    """
    Accept data-URIs and https URLs as-is, upgrade http, complete
    protocol-relative hosting URLs. Anything else is rejected.
    """
    if not value or not isinstance(value, str):
        raise ValueError("Image URL is missing or invalid.")
    if value.startswith("data:image/"):
        return value
    if value.startswith("https://"):
        return value
    if value.startswith("http://"):
        return "https://" + value[len("http://"):]
    if value.startswith("//res.cloudinary.com"):
        return "https:" + value
    raise ValueError(f"Invalid image URL format: {value[:50]}...")
