import io
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

from certstore.config import Settings


@pytest.fixture(autouse=True)
def no_default_stores(tmp_path, monkeypatch):
    # never pick up the real ~/.keystore or interpreter cacerts
    monkeypatch.setenv("CERTSTORE_TRUST_STORE_FILE", str(tmp_path / "missing-cacerts"))
    monkeypatch.setenv("CERTSTORE_KEY_STORE_FILE", str(tmp_path / "missing-keystore"))
    monkeypatch.delenv("CERTSTORE_DEFAULT_PASSPHRASE", raising=False)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        trust_store_file=str(tmp_path / "cacerts"),
        key_store_file=str(tmp_path / ".keystore"),
    )


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def make_cert():
    """Factory for self-signed certificates: make_cert(cn, key=None) -> (cert, key)."""
    def _make(common_name, key=None):
        key = key or rsa.generate_private_key(public_exponent=65537, key_size=2048)
        subject = issuer = x509.Name([
            x509.NameAttribute(NameOID.COMMON_NAME, common_name),
        ])
        cert = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(datetime.now(timezone.utc))
            .not_valid_after(datetime.now(timezone.utc) + timedelta(days=10))
            .sign(key, hashes.SHA256())
        )
        return cert, key

    return _make


@pytest.fixture
def write_pkcs12():
    """Write a passphrase protected PKCS#12 file, like a platform default store."""
    def _write(path, key=None, cert=None, cas=None, passphrase=b"changeit", name=None):
        data = pkcs12.serialize_key_and_certificates(
            name=name,
            key=key,
            cert=cert,
            cas=cas,
            encryption_algorithm=serialization.BestAvailableEncryption(passphrase),
        )
        with open(path, "wb") as f:
            f.write(data)
        return path

    return _write


class _Pipe(io.RawIOBase):
    def __init__(self, data):
        self._data = io.BytesIO(data)

    def readable(self):
        return True

    def seekable(self):
        return False

    def readinto(self, b):
        chunk = self._data.read(len(b))
        b[:len(chunk)] = chunk
        return len(chunk)


@pytest.fixture
def pipe():
    """Factory for buffered, non-seekable binary streams, like sys.stdin.buffer."""
    return lambda data: io.BufferedReader(_Pipe(data))
