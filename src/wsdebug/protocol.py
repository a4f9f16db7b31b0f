"""
Payload rendering for the transcript: raw text, pretty JSON, msgpack documents, binary summaries.
"""
import json
import logging
from typing import Any, List, Optional, Union

import blake3
import msgpack

logger = logging.getLogger(__name__)

Payload = Union[str, bytes]

JSON_INDENT = 2
DIGEST_CHARS = 16


def hash_payload(data: bytes) -> bytes:
    """BLAKE3 digest of a binary frame (32 bytes)."""
    return blake3.blake3(data).digest()


def describe_binary(data: bytes) -> str:
    """One-line summary of a binary frame: size, digest prefix, hex body."""
    digest = hash_payload(data).hex()[:DIGEST_CHARS]
    return f"Binary({len(data)} bytes, blake3={digest}): {data.hex()}"


def _hex_bytes(value: Any) -> str:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def pretty_json(raw: str) -> Optional[str]:
    """Re-serialize a JSON document with indentation; None if it does not parse."""
    try:
        value = json.loads(raw)
        return json.dumps(value, indent=JSON_INDENT, ensure_ascii=False)
    except (ValueError, RecursionError) as e:
        # also oversized integers and deep nesting
        logger.warning("Not a JSON document: %s", e)
        return None


def unpack_document(data: bytes) -> Optional[Union[dict, List[Any]]]:
    """Decode a msgpack map or array; anything else (scalars, garbage) gives None."""
    try:
        result = msgpack.unpackb(data, raw=False, strict_map_key=False)
    except (ValueError, TypeError, RecursionError, msgpack.exceptions.ExtraData,
            msgpack.exceptions.UnpackException):
        return None
    if not isinstance(result, (dict, list)):
        return None
    return result


def pretty_msgpack(data: bytes) -> Optional[str]:
    document = unpack_document(data)
    if document is None:
        logger.debug("Binary message is not a msgpack document")
        return None
    try:
        return json.dumps(document, indent=JSON_INDENT, ensure_ascii=False, default=_hex_bytes)
    except (TypeError, ValueError, RecursionError) as e:
        logger.warning("Cannot render msgpack document: %s", e)
        return None


def render_payload(message: Payload, pretty: bool = False) -> str:
    """Transcript body for a message.

    Text is kept as-is unless `pretty` is set and it parses as JSON. Binary
    frames are shown as a decoded msgpack document when `pretty` is set and
    they hold one, otherwise as a hex summary.
    """
    if isinstance(message, (bytes, bytearray, memoryview)):
        data = bytes(message)
        if pretty:
            text = pretty_msgpack(data)
            if text is not None:
                return text
        return describe_binary(data)

    if pretty:
        text = pretty_json(message)
        if text is not None:
            return text
    return message
