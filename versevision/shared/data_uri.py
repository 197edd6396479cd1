import base64
import binascii
import re
from typing import Optional, Tuple

from versevision.specs.common.errors import InvalidInputError
from versevision.specs.common.image import ImageReference

IMAGE_MIME_PREFIX = "image/"

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[^;,]+)(?P<params>(?:;[^;,]+)*),(?P<payload>.*)$", re.DOTALL)


def is_image_type(content_type: Optional[str]) -> bool:
    return bool(content_type) and content_type.strip().lower().startswith(IMAGE_MIME_PREFIX)


def image_reference_from_upload(
    *,
    content_type: Optional[str],
    data: bytes,
    filename: Optional[str] = None,
) -> ImageReference:
    """Build an ImageReference from an uploaded file.

    The content type is checked before the payload is touched so that a
    rejected upload is never read.
    """
    if not is_image_type(content_type):
        raise InvalidInputError(
            "Please upload an image file.",
            details={"contentType": content_type, "filename": filename},
        )
    mime = content_type.split(";", 1)[0].strip().lower()
    return ImageReference(mimeType=mime, data=bytes(data), filename=filename)


def encode_data_uri(image: ImageReference) -> str:
    """Encode image to a base64 data URI"""
    payload = base64.b64encode(image.data).decode("utf-8")
    return f"data:{image.mimeType};base64,{payload}"


def split_data_uri(uri: str) -> Tuple[str, str]:
    """Return (mime, base64 payload) without decoding the payload."""
    match = _DATA_URI_RE.match((uri or "").strip())
    if not match:
        raise InvalidInputError("Expected a data URI with a MIME type prefix")
    mime = match.group("mime").strip().lower()
    params = [p.strip().lower() for p in match.group("params").split(";") if p.strip()]
    if "base64" not in params:
        raise InvalidInputError("Only base64-encoded data URIs are supported", details={"contentType": mime})
    return mime, match.group("payload")


def decode_base64(payload: str) -> bytes:
    try:
        return base64.b64decode("".join(payload.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidInputError("Payload is not valid base64", details={"error": str(exc)}) from exc


def decode_data_uri(uri: str, *, filename: Optional[str] = None) -> ImageReference:
    """Parse a 'data:<mime>;base64,<payload>' URI into an ImageReference."""
    mime, payload = split_data_uri(uri)
    if not is_image_type(mime):
        raise InvalidInputError("Please upload an image file.", details={"contentType": mime})
    return ImageReference(mimeType=mime, data=decode_base64(payload), filename=filename)
