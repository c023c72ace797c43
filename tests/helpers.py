"""Small helpers shared by the test modules."""

import base64

API = "/api/v1"


def encode_image(raw: bytes = b"\xff\xd8\xff\xe0fake-jpeg-payload") -> str:
    """Base64-encode *raw* the way the kiosk camera sends frames."""
    return base64.b64encode(raw).decode("ascii")
