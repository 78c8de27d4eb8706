"""Turn inline data or a file path into a byte stream."""
from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from typing import BinaryIO, Optional

from .errors import ResourceUnavailableError

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


def decode_inline_data(data: str) -> bytes:
    """Return the bytes behind an inline credential string.

    Standard base64 is tried first. Anything that does not decode (a raw PEM
    document, for example) is taken as UTF-8 text as-is.
    """
    compact = _WHITESPACE.sub("", data)
    if not compact:
        return data.encode("utf-8")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError):
        return data.encode("utf-8")


def resolve_source(data: Optional[str] = None, path: Optional[str] = None) -> Optional[BinaryIO]:
    """Open a credential source as a binary stream.

    Inline ``data`` wins over ``path``. When neither is given ``None`` is
    returned. The caller owns the returned stream and must close it.

    :param data: Inline certificate or key material, base64 or raw text
    :param path: Filesystem path to read instead
    :raises ResourceUnavailableError: If ``path`` cannot be opened
    """
    if data is not None:
        logger.debug("Resolving credential source from inline data")
        return io.BytesIO(decode_inline_data(data))

    if path is not None:
        logger.debug(f"Resolving credential source from file {path}")
        try:
            return open(path, "rb")
        except OSError as e:
            raise ResourceUnavailableError(f"Cannot open {path}: {e.strerror or e}", path=path) from e

    return None
