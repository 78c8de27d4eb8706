"""Build trust and key stores from inline or file based credentials."""
from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import BinaryIO, Optional

from .config import DEFAULT_KEY_ALGORITHM, DEFAULT_PASSPHRASE, Settings
from .errors import ResourceUnavailableError
from .keys import load_private_key
from .pem import decode_pem, has_more_data, read_certificate, seekable_stream
from .sources import resolve_source
from .stores import KeyStore, Passphrase, TrustStore, certificate_alias

logger = logging.getLogger(__name__)


def create_trust_store_from_stream(stream: Optional[BinaryIO], settings: Optional[Settings] = None) -> TrustStore:
    """Seeded trust store plus every certificate in ``stream``.

    The stream is read but not closed; ``None`` yields the seeded store.
    A stream that cannot seek is read into memory first.
    """
    store = TrustStore.seeded(settings)
    if stream is None:
        return store
    stream = seekable_stream(stream)

    while has_more_data(stream):
        cert = read_certificate(stream)
        store.set_certificate_entry(certificate_alias(cert), cert)
    logger.debug(f"Trust store holds {len(store)} certificates")
    return store


def create_trust_store(ca_cert_data: Optional[str] = None, ca_cert_file: Optional[str] = None,
                       settings: Optional[Settings] = None) -> TrustStore:
    """Build a trust store from CA certificates given inline or as a file.

    The store starts with the platform default trust anchors (if they can be
    read) and gets one entry per certificate, aliased by subject DN. A later
    certificate with the same subject replaces an earlier one.

    :param ca_cert_data: Inline PEM/DER certificates, optionally base64 encoded
    :param ca_cert_file: Path to a certificate bundle, used if no inline data
    :param settings: Default store settings, loaded from the environment if omitted
    :raises ResourceUnavailableError: If ``ca_cert_file`` cannot be opened
    :raises MalformedEncodingError: If a certificate cannot be parsed
    """
    stream = resolve_source(ca_cert_data, ca_cert_file)
    if stream is None:
        return create_trust_store_from_stream(None, settings)
    with stream:
        return create_trust_store_from_stream(stream, settings)


def create_key_store_from_streams(cert_stream: BinaryIO, key_stream: BinaryIO,
                                  key_algorithm: str = DEFAULT_KEY_ALGORITHM,
                                  passphrase: Passphrase = DEFAULT_PASSPHRASE,
                                  settings: Optional[Settings] = None) -> KeyStore:
    """Seeded key store plus one entry for the certificate and key read from the streams.

    Only the first certificate of ``cert_stream`` is used. Streams are read
    but not closed.
    Streams that cannot seek are read into memory first.
    """
    store = KeyStore.seeded(settings)

    cert = read_certificate(seekable_stream(cert_stream))
    private_key = load_private_key(decode_pem(seekable_stream(key_stream)), key_algorithm)
    store.set_key_entry(certificate_alias(cert), private_key, passphrase, [cert])
    return store


def create_key_store(client_cert_data: Optional[str] = None, client_cert_file: Optional[str] = None,
                     client_key_data: Optional[str] = None, client_key_file: Optional[str] = None,
                     key_algorithm: str = DEFAULT_KEY_ALGORITHM, passphrase: Passphrase = DEFAULT_PASSPHRASE,
                     settings: Optional[Settings] = None) -> KeyStore:
    """Build a key store holding the client identity.

    :param client_cert_data: Inline client certificate, optionally base64 encoded
    :param client_cert_file: Path to the client certificate
    :param client_key_data: Inline PEM private key, optionally base64 encoded
    :param client_key_file: Path to the PEM private key
    :param key_algorithm: ``RSA``, ``EC``, ``DSA``, ``Ed25519`` or ``Ed448``
    :param passphrase: Passphrase protecting the new entry
    :param settings: Default store settings, loaded from the environment if omitted
    :raises ResourceUnavailableError: If a source is missing or cannot be opened
    :raises MalformedEncodingError: If certificate or key cannot be parsed
    :raises UnsupportedAlgorithmError: If ``key_algorithm`` is unknown
    :raises StoreOperationError: If key and certificate do not belong together
    """
    with ExitStack() as stack:
        cert_stream = resolve_source(client_cert_data, client_cert_file)
        if cert_stream is None:
            raise ResourceUnavailableError("No client certificate data or file given")
        stack.enter_context(cert_stream)

        key_stream = resolve_source(client_key_data, client_key_file)
        if key_stream is None:
            raise ResourceUnavailableError("No client key data or file given")
        stack.enter_context(key_stream)

        return create_key_store_from_streams(cert_stream, key_stream, key_algorithm, passphrase, settings)
