"""In-memory trust and key stores.

Both stores map an alias (normally the certificate subject DN) to an entry,
keep insertion order and overwrite on insert. Key entry passphrases are kept
as bcrypt hashes. Either store can be seeded from a PKCS#12 bundle at a
well-known location; seeding is best effort and only ever logs on failure.
"""
from __future__ import annotations

import base64
import hashlib
import logging
import os
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

import bcrypt
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from .config import Settings, load_settings
from .errors import StoreOperationError

logger = logging.getLogger(__name__)

Passphrase = Union[str, bytes, None]


def certificate_alias(cert: x509.Certificate) -> str:
    """Alias used for ``cert`` in both stores: its RFC 4514 subject name."""
    return cert.subject.rfc4514_string()


def _passphrase_bytes(passphrase: Passphrase) -> bytes:
    if passphrase is None:
        return b""
    if isinstance(passphrase, str):
        return passphrase.encode("utf-8")
    return bytes(passphrase)


def _prehash(passphrase: Passphrase) -> bytes:
    # bcrypt ignores input past 72 bytes
    return base64.b64encode(hashlib.sha256(_passphrase_bytes(passphrase)).digest())


def load_default_store(path: str, passphrase: Passphrase) -> Tuple[Optional[pkcs12.PKCS12KeyAndCertificates], bool]:
    """Read a default PKCS#12 store file.

    :return: ``(bundle, True)`` on success, ``(None, False)`` if the file is
        missing, empty or unreadable. Failures are logged, never raised.
    """
    if not os.path.isfile(path) or os.path.getsize(path) == 0:
        return None, False

    try:
        with open(path, "rb") as f:
            data = f.read()
        bundle = pkcs12.load_pkcs12(data, _passphrase_bytes(passphrase) or None)
    except Exception as e:
        logger.warning(
            f"There is a problem with reading default keystore file {path} with the default passphrase "
            f"{passphrase} - the keystore file won't be loaded. The reason is: {e}"
        )
        return None, False

    logger.debug(f"Loaded default keystore file {path}")
    return bundle, True


def _friendly_alias(item: pkcs12.PKCS12Certificate) -> str:
    if item.friendly_name:
        return item.friendly_name.decode("utf-8", errors="replace")
    return certificate_alias(item.certificate)


def _public_key_der(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@dataclass(frozen=True)
class KeyEntry:
    private_key: object
    certificate_chain: Tuple[x509.Certificate, ...]
    passphrase_hash: bytes

    @property
    def certificate(self) -> x509.Certificate:
        return self.certificate_chain[0]

    def check_passphrase(self, passphrase: Passphrase) -> bool:
        return bcrypt.checkpw(_prehash(passphrase), self.passphrase_hash)


class TrustStore:
    """Alias -> trusted certificate."""

    def __init__(self):
        self._entries: Dict[str, x509.Certificate] = {}

    @classmethod
    def seeded(cls, settings: Optional[Settings] = None) -> "TrustStore":
        """New store holding the platform default trust anchors, if readable."""
        settings = settings or load_settings()
        store = cls()
        bundle, _ = load_default_store(settings.trust_store_file, settings.default_passphrase)
        if bundle is not None:
            items = ([bundle.cert] if bundle.cert is not None else []) + list(bundle.additional_certs)
            for item in items:
                store.set_certificate_entry(_friendly_alias(item), item.certificate)
        return store

    def set_certificate_entry(self, alias: str, cert: x509.Certificate) -> None:
        self._entries[alias] = cert

    def get_certificate(self, alias: str) -> Optional[x509.Certificate]:
        return self._entries.get(alias)

    def aliases(self) -> List[str]:
        return list(self._entries)

    def certificates(self) -> List[x509.Certificate]:
        return list(self._entries.values())

    def to_pem(self) -> bytes:
        """All certificates as one PEM bundle, e.g. for ``ssl`` ``cadata``."""
        return b"".join(c.public_bytes(serialization.Encoding.PEM) for c in self._entries.values())

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class KeyStore:
    """Alias -> private key, passphrase and certificate chain."""

    def __init__(self):
        self._entries: Dict[str, KeyEntry] = {}

    @classmethod
    def seeded(cls, settings: Optional[Settings] = None) -> "KeyStore":
        """New store holding the default per-user identity, if readable."""
        settings = settings or load_settings()
        store = cls()
        bundle, _ = load_default_store(settings.key_store_file, settings.default_passphrase)
        if bundle is not None and bundle.key is not None and bundle.cert is not None:
            chain = [bundle.cert.certificate] + [c.certificate for c in bundle.additional_certs]
            try:
                store.set_key_entry(_friendly_alias(bundle.cert), bundle.key, settings.default_passphrase, chain)
            except StoreOperationError as e:
                logger.warning(f"Skipping key entry of default keystore file {settings.key_store_file}: {e}")
        return store

    def set_key_entry(self, alias: str, private_key, passphrase: Passphrase, chain: Sequence[x509.Certificate]) -> None:
        """Store ``private_key`` under ``alias``, replacing any previous entry.

        :param chain: Certificate chain, leaf first; the leaf must carry the
            public half of ``private_key``
        :raises StoreOperationError: If the chain is empty or does not match
        """
        chain = tuple(chain)
        if not chain:
            raise StoreOperationError(f"Key entry {alias} needs a certificate chain")

        try:
            matches = _public_key_der(private_key.public_key()) == _public_key_der(chain[0].public_key())
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise StoreOperationError(f"Cannot compare key and certificate for {alias}: {e}") from e
        if not matches:
            raise StoreOperationError(f"Private key does not match the certificate of {alias}")

        hashed = bcrypt.hashpw(_prehash(passphrase), bcrypt.gensalt())
        self._entries[alias] = KeyEntry(private_key, chain, hashed)
        logger.debug(f"Stored key entry {alias}")

    def get_entry(self, alias: str) -> Optional[KeyEntry]:
        return self._entries.get(alias)

    def get_key(self, alias: str, passphrase: Passphrase):
        """Return the private key of ``alias``, or None if there is no such entry.

        :raises StoreOperationError: If ``passphrase`` is wrong
        """
        entry = self._entries.get(alias)
        if entry is None:
            return None
        if not entry.check_passphrase(passphrase):
            raise StoreOperationError(f"Wrong passphrase for key entry {alias}")
        return entry.private_key

    def get_certificate(self, alias: str) -> Optional[x509.Certificate]:
        entry = self._entries.get(alias)
        return entry.certificate if entry else None

    def get_certificate_chain(self, alias: str) -> Optional[Tuple[x509.Certificate, ...]]:
        entry = self._entries.get(alias)
        return entry.certificate_chain if entry else None

    def aliases(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, alias: object) -> bool:
        return alias in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
