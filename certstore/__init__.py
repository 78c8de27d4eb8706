"""Build in-memory TLS trust and key stores from PEM/DER credentials."""

from .builders import (
    create_key_store,
    create_key_store_from_streams,
    create_trust_store,
    create_trust_store_from_stream,
)
from .errors import (
    CertStoreError,
    MalformedEncodingError,
    ResourceUnavailableError,
    StoreOperationError,
    UnsupportedAlgorithmError,
)
from .stores import KeyEntry, KeyStore, TrustStore

__all__ = [
    "create_key_store",
    "create_key_store_from_streams",
    "create_trust_store",
    "create_trust_store_from_stream",
    "CertStoreError",
    "MalformedEncodingError",
    "ResourceUnavailableError",
    "StoreOperationError",
    "UnsupportedAlgorithmError",
    "KeyEntry",
    "KeyStore",
    "TrustStore",
]
