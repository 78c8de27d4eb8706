"""Exceptions raised while building trust and key stores."""
from __future__ import annotations

from typing import Optional


class CertStoreError(Exception):
    pass


class ResourceUnavailableError(CertStoreError):
    """A user supplied certificate or key source could not be opened."""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.path = path


class MalformedEncodingError(CertStoreError):
    """Base64, PEM, ASN.1 or X.509 data is not well formed."""


class UnsupportedAlgorithmError(CertStoreError):
    """The key algorithm name is not known to the crypto provider."""


class StoreOperationError(CertStoreError):
    """An entry could not be put into (or read from) a store."""
