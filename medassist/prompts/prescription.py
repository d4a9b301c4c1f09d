"""Prescription image reading prompt and image decoding.

Examples:
    >>> from medassist.prompts.prescription import decode_image
    >>> data, mime_type = decode_image("data:image/png;base64,iVBORw0KGgo=")
    >>> mime_type
    'image/png'
"""

import base64
import binascii
import re

GENERATION_CONFIG = {"temperature": 0.2, "max_output_tokens": 500}

DEFAULT_MIME_TYPE = "image/jpeg"

_DATA_URL = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(;[^,]*)?,", re.IGNORECASE)

PROMPT = """Analyze this prescription image and extract all readable information.

Provide:

**MEDICINES PRESCRIBED:**
List each medicine with:
- Medicine name
- Dosage (strength)
- Frequency (how often to take)
- Duration (how many days)

**SPECIAL INSTRUCTIONS:**
Any additional notes or warnings

**DOCTOR INFORMATION:**
Doctor's name and credentials if visible

**DATE:**
Prescription date if visible

**IMPORTANT NOTES:**
- Highlight any unclear or unreadable parts
- Note if prescription needs verification
- Remind to consult pharmacist if unsure

Be accurate and clear. If something is unclear, state it explicitly."""


def get_prompt() -> str:
    return PROMPT


def decode_image(image_base64: str) -> tuple[bytes, str]:
    """Decode a raw base64 string or a data URL.

    Args:
        image_base64: Base64 payload, optionally prefixed "data:<mime>;base64,"

    Returns:
        (image bytes, MIME type)

    Raises:
        ValueError: If the payload is not valid base64 or is empty.
    """
    mime_type = DEFAULT_MIME_TYPE
    payload = image_base64.strip()

    match = _DATA_URL.match(payload)
    if match:
        mime_type = match.group("mime") or DEFAULT_MIME_TYPE
        payload = payload[match.end():]
    elif "," in payload:
        payload = payload.split(",", 1)[1]

    # MIME-style payloads wrap lines every 76 characters
    payload = "".join(payload.split())

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Image data is not valid base64") from e

    if not data:
        raise ValueError("Image data is empty")
    return data, mime_type
