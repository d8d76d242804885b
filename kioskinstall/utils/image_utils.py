import base64
import binascii
import re

DATA_URL_PATTERN = re.compile(r'^data:(?P<mime>image/[a-z]+);base64,(?P<payload>.+)$', re.DOTALL)


def encode_data_url(image_bytes: bytes, mime: str = 'image/jpeg') -> str:
    return f"data:{mime};base64,{base64.b64encode(image_bytes).decode('ascii')}"


def split_data_url(data_url: str):
    """Return (mime, base64 payload) or raise ValueError for anything else."""
    match = DATA_URL_PATTERN.match(data_url or '')
    if not match:
        raise ValueError("Not a base64 image data URL")
    return match.group('mime'), match.group('payload')


def decode_data_url(data_url: str) -> bytes:
    _, payload = split_data_url(data_url)
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 payload: {e}") from e
