"""Private key decoding: PKCS#8 first, PKCS#1 as the RSA fallback."""
from __future__ import annotations

import logging
from typing import NamedTuple, Optional, Union

from asn1crypto import keys as asn1_keys
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from .errors import MalformedEncodingError, UnsupportedAlgorithmError
from .pkcs1 import RSAPrivateCrtKeySpec, decode_pkcs1

logger = logging.getLogger(__name__)

# Key algorithm name -> PKCS#8 algorithm identifiers it accepts
KEY_ALGORITHMS = {
    "RSA": ("rsa", "rsassa_pss"),
    "EC": ("ec",),
    "DSA": ("dsa",),
    "ED25519": ("ed25519",),
    "ED448": ("ed448",),
}


class PKCS8KeySpec(NamedTuple):
    encoded: bytes
    algorithm: str


KeySpec = Union[PKCS8KeySpec, RSAPrivateCrtKeySpec]


def normalize_algorithm(algorithm: str) -> str:
    """Return the canonical key algorithm name.

    :raises UnsupportedAlgorithmError: For names outside ``KEY_ALGORITHMS``
    """
    name = (algorithm or "").strip().upper()
    if name not in KEY_ALGORITHMS:
        raise UnsupportedAlgorithmError(f"Unsupported key algorithm: {algorithm!r}")
    return name


def _try_pkcs8(der: bytes, algorithm: str) -> Optional[PKCS8KeySpec]:
    # None means "not a PKCS#8 key of this algorithm", the only case that
    # may fall through to another encoding.
    try:
        info = asn1_keys.PrivateKeyInfo.load(der, strict=True)
        oid = info["private_key_algorithm"]["algorithm"].native
    except (ValueError, KeyError):
        return None

    if oid not in KEY_ALGORITHMS[algorithm]:
        logger.debug(f"PKCS#8 key algorithm {oid} does not match {algorithm}")
        return None
    return PKCS8KeySpec(der, algorithm)


def decode_private_key_spec(der: bytes, algorithm: str) -> KeySpec:
    """Work out how ``der`` encodes a private key of the given algorithm.

    The bytes are read as PKCS#8 ``PrivateKeyInfo`` first. Only when that
    structure does not fit, and only for RSA, are they read again as a
    PKCS#1 ``RSAPrivateKey``.

    :param der: Raw key bytes (the decoded PEM payload)
    :param algorithm: Key algorithm name, e.g. ``"RSA"`` or ``"EC"``
    :return: ``PKCS8KeySpec`` or ``RSAPrivateCrtKeySpec``
    :raises UnsupportedAlgorithmError: For an unknown algorithm name
    :raises MalformedEncodingError: If neither encoding fits
    """
    name = normalize_algorithm(algorithm)

    spec = _try_pkcs8(der, name)
    if spec is not None:
        return spec

    if name != "RSA":
        raise MalformedEncodingError(f"Key is not a PKCS#8 encoded {name} private key")

    logger.debug("Key is not PKCS#8, trying PKCS#1")
    return decode_pkcs1(der)


def generate_private(spec: KeySpec):
    """Build a private key object from a decoded key spec."""
    if isinstance(spec, PKCS8KeySpec):
        try:
            return serialization.load_der_private_key(spec.encoded, password=None)
        except UnsupportedAlgorithm as e:
            raise UnsupportedAlgorithmError(f"{spec.algorithm} keys are not supported by the crypto backend: {e}") from e
        except (ValueError, TypeError) as e:
            raise MalformedEncodingError(f"Invalid PKCS#8 {spec.algorithm} private key: {e}") from e

    numbers = rsa.RSAPrivateNumbers(
        p=spec.prime_p,
        q=spec.prime_q,
        d=spec.private_exponent,
        dmp1=spec.exponent_p,
        dmq1=spec.exponent_q,
        iqmp=spec.coefficient,
        public_numbers=rsa.RSAPublicNumbers(e=spec.public_exponent, n=spec.modulus),
    )
    try:
        return numbers.private_key()
    except ValueError as e:
        raise MalformedEncodingError(f"Inconsistent RSA key parameters: {e}") from e


def load_private_key(der: bytes, algorithm: str):
    """Decode ``der`` and return the private key object."""
    return generate_private(decode_private_key_spec(der, algorithm))
