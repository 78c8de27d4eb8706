"""PEM decoding and one-at-a-time certificate reading from byte streams."""
from __future__ import annotations

import base64
import binascii
import io
import re
from typing import BinaryIO, List, NamedTuple, Optional

from cryptography import x509

from .errors import MalformedEncodingError

CERTIFICATE_LABELS = ("CERTIFICATE", "X509 CERTIFICATE")

_BEGIN = re.compile(r"-----BEGIN ([^-\r\n]+)-----")
_DER_SEQUENCE = 0x30
_CHUNK = 4096
_MAX_LENGTH_BYTES = 4


class PemBlock(NamedTuple):
    label: str
    payload: bytes


def _lines(stream: BinaryIO):
    for raw in iter(stream.readline, b""):
        yield raw.decode("utf-8", errors="replace")


def read_pem_block(stream: BinaryIO) -> PemBlock:
    """Read the next PEM block from ``stream``.

    Lines before the first BEGIN marker are skipped. The label of that marker
    decides which END marker closes the block. On return the stream is
    positioned just after the END line.

    :raises MalformedEncodingError: If no BEGIN or no matching END marker is
        found, or the body is not valid base64
    """
    for line in _lines(stream):
        match = _BEGIN.search(line)
        if match:
            label = match.group(1)
            return PemBlock(label, _read_payload(stream, f"-----END {label}-----"))
    raise MalformedEncodingError("PEM is invalid: no begin marker")


def _read_payload(stream: BinaryIO, end_marker: str) -> bytes:
    body: List[str] = []
    for line in _lines(stream):
        if end_marker in line:
            try:
                return base64.b64decode("".join(body), validate=True)
            except (binascii.Error, ValueError) as e:
                raise MalformedEncodingError(f"PEM is invalid: bad base64 body ({e})") from e
        body.append(line.strip())
    raise MalformedEncodingError("PEM is invalid: no end marker")


def decode_pem(stream: BinaryIO) -> bytes:
    """Return the decoded payload of the next PEM block in ``stream``."""
    return read_pem_block(stream).payload


def seekable_stream(stream: BinaryIO) -> BinaryIO:
    """Return ``stream`` itself if it can seek, else its remaining bytes in memory."""
    if stream.seekable():
        return stream
    return io.BytesIO(stream.read())


def has_more_data(stream: BinaryIO) -> bool:
    """Whether anything other than whitespace is left in ``stream``.

    The stream position is left unchanged.
    """
    start = stream.tell()
    try:
        while True:
            chunk = stream.read(_CHUNK)
            if not chunk:
                return False
            if chunk.strip():
                return True
    finally:
        stream.seek(start)


def _skip_whitespace(stream: BinaryIO) -> Optional[int]:
    while True:
        pos = stream.tell()
        b = stream.read(1)
        if not b:
            return None
        if not b.isspace():
            stream.seek(pos)
            return b[0]


def _load_der_certificate(der: bytes) -> x509.Certificate:
    try:
        return x509.load_der_x509_certificate(der)
    except ValueError as e:
        raise MalformedEncodingError(f"Could not parse certificate: {e}") from e


def _read_exactly(stream: BinaryIO, size: int) -> bytes:
    data = stream.read(size)
    if len(data) < size:
        raise MalformedEncodingError(f"Could not parse certificate: expected {size} bytes, got {len(data)}")
    return data


def _read_der_element(stream: BinaryIO) -> bytes:
    # tag, then short form length or 0x80|n followed by n length bytes
    header = _read_exactly(stream, 2)
    length = header[1]
    if length & 0x80:
        count = length & 0x7F
        if not 0 < count <= _MAX_LENGTH_BYTES:
            raise MalformedEncodingError(f"Could not parse certificate: bad DER length byte {length:#x}")
        extra = _read_exactly(stream, count)
        header += extra
        length = int.from_bytes(extra, "big")
    return header + _read_exactly(stream, length)


def read_certificate(stream: BinaryIO) -> x509.Certificate:
    """Parse exactly one X.509 certificate, PEM or DER, from ``stream``.

    The stream is advanced past the certificate so repeated calls walk a
    bundle of concatenated certificates.

    :raises MalformedEncodingError: If no certificate can be parsed
    """
    first = _skip_whitespace(stream)
    if first is None:
        raise MalformedEncodingError("Could not parse certificate: no data")

    if first == _DER_SEQUENCE:
        return _load_der_certificate(_read_der_element(stream))

    block = read_pem_block(stream)
    if block.label not in CERTIFICATE_LABELS:
        raise MalformedEncodingError(f"Expected a certificate PEM block, found {block.label}")
    return _load_der_certificate(block.payload)
