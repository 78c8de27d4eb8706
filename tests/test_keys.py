import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa

from certstore import keys
from certstore.errors import MalformedEncodingError, UnsupportedAlgorithmError
from certstore.keys import (
    PKCS8KeySpec,
    decode_private_key_spec,
    generate_private,
    load_private_key,
    normalize_algorithm,
)
from certstore.pkcs1 import RSAPrivateCrtKeySpec


def der(key, fmt):
    return key.private_bytes(
        encoding=serialization.Encoding.DER,
        format=fmt,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def no_pkcs1_fallback(monkeypatch):
    def _fail(_der):
        raise AssertionError("PKCS#1 fallback should not be used")
    monkeypatch.setattr(keys, "decode_pkcs1", _fail)


def test_pkcs8_rsa_key_skips_fallback(rsa_key, no_pkcs1_fallback):
    spec = decode_private_key_spec(der(rsa_key, serialization.PrivateFormat.PKCS8), "RSA")
    assert isinstance(spec, PKCS8KeySpec)

    key = generate_private(spec)
    assert key.private_numbers() == rsa_key.private_numbers()


def test_pkcs1_rsa_key_uses_fallback(rsa_key):
    spec = decode_private_key_spec(der(rsa_key, serialization.PrivateFormat.TraditionalOpenSSL), "RSA")
    assert isinstance(spec, RSAPrivateCrtKeySpec)

    key = generate_private(spec)
    assert isinstance(key, rsa.RSAPrivateKey)
    assert key.private_numbers() == rsa_key.private_numbers()


def test_pkcs8_ec_key(no_pkcs1_fallback):
    ec_key = ec.generate_private_key(ec.SECP256R1())
    key = load_private_key(der(ec_key, serialization.PrivateFormat.PKCS8), "EC")
    assert key.private_numbers() == ec_key.private_numbers()


def test_legacy_ec_key_has_no_fallback():
    ec_key = ec.generate_private_key(ec.SECP256R1())
    with pytest.raises(MalformedEncodingError, match="EC"):
        load_private_key(der(ec_key, serialization.PrivateFormat.TraditionalOpenSSL), "EC")


def test_algorithm_mismatch_is_malformed():
    ec_key = ec.generate_private_key(ec.SECP256R1())
    with pytest.raises(MalformedEncodingError):
        load_private_key(der(ec_key, serialization.PrivateFormat.PKCS8), "RSA")


def test_unknown_algorithm():
    with pytest.raises(UnsupportedAlgorithmError):
        load_private_key(b"\x30\x00", "ROT13")


@pytest.mark.parametrize("name, expected", [
    ("rsa", "RSA"),
    (" Ec ", "EC"),
    ("Ed25519", "ED25519"),
])
def test_algorithm_names_are_case_insensitive(name, expected):
    assert normalize_algorithm(name) == expected


def test_garbage_key_bytes():
    with pytest.raises(MalformedEncodingError):
        load_private_key(b"definitely not a key", "RSA")


def test_inconsistent_rsa_numbers(rsa_key):
    spec = decode_private_key_spec(der(rsa_key, serialization.PrivateFormat.TraditionalOpenSSL), "RSA")
    with pytest.raises(MalformedEncodingError):
        generate_private(spec._replace(modulus=spec.modulus + 2))
