"""Key material management: RSA key-pair generation and PEM (de)serialization.

Private keys are serialized as unencrypted PKCS#8 PEM ("PRIVATE KEY"),
public keys as SubjectPublicKeyInfo PEM ("PUBLIC KEY").
"""

import logging
import time
from dataclasses import dataclass

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace

from authority.domain.errors import CodecError
from authority.metrics import authority_metrics

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


@dataclass
class KeyPair:
    """Holds a private key, its public key and their PEM encodings."""

    private_key: rsa.RSAPrivateKey
    public_key: rsa.RSAPublicKey
    private_key_pem: str
    public_key_pem: str

    @property
    def key_size(self) -> int:
        return self.private_key.key_size


def private_key_to_pem(private_key: rsa.RSAPrivateKey) -> str:
    """Serialize a private key to unencrypted PKCS#8 PEM."""
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


def public_key_to_pem(public_key: rsa.RSAPublicKey) -> str:
    """Serialize a public key to SubjectPublicKeyInfo PEM."""
    return public_key.public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode("utf-8")


class KeyManager:
    """Generates and parses RSA key pairs.

    A requested bit size of zero (or None) falls back to the configured default.
    """

    DEFAULT_KEY_SIZE = 2048
    PUBLIC_EXPONENT = 65537

    def __init__(self, default_key_size: int | None = None) -> None:
        self.default_key_size = default_key_size or self.DEFAULT_KEY_SIZE

    def generate(self, bit_size: int | None = None) -> KeyPair:
        """Generate a new RSA key pair.

        Args:
            bit_size: Key size in bits; 0 or None selects the default.

        Returns:
            KeyPair with parsed keys and PEM encodings.

        Raises:
            CodecError: If the key cannot be generated (e.g. unsupported size).
        """
        key_size = bit_size or self.default_key_size

        with tracer.start_as_current_span("KeyManager.generate") as span:
            span.set_attribute("key_size", key_size)
            start_time = time.time()

            try:
                private_key = rsa.generate_private_key(
                    public_exponent=self.PUBLIC_EXPONENT,
                    key_size=key_size,
                )
            except ValueError as e:
                logger.error(
                    "key_generation_failed",
                    extra={"key_size": key_size, "error": str(e)},
                )
                raise CodecError(f"Failed to generate {key_size}-bit RSA key: {e}") from e

            public_key = private_key.public_key()
            key_pair = KeyPair(
                private_key=private_key,
                public_key=public_key,
                private_key_pem=private_key_to_pem(private_key),
                public_key_pem=public_key_to_pem(public_key),
            )

            authority_metrics.record_key_generated(key_size, time.time() - start_time)
            logger.debug("key_pair_generated", extra={"key_size": key_size})

            return key_pair

    def load_private_key(self, pem: str | bytes) -> rsa.RSAPrivateKey:
        """Parse a PEM private key.

        Raises:
            CodecError: If the data is not an unencrypted RSA private key.
        """
        data = pem.encode("utf-8") if isinstance(pem, str) else pem
        try:
            private_key = serialization.load_pem_private_key(data, password=None)
        except (ValueError, TypeError) as e:
            raise CodecError(f"Failed to parse private key: {e}") from e

        if not isinstance(private_key, rsa.RSAPrivateKey):
            raise CodecError(f"Unsupported private key type: {type(private_key).__name__}")
        return private_key

    def load_public_key(self, pem: str | bytes) -> rsa.RSAPublicKey:
        """Parse a PEM public key.

        Raises:
            CodecError: If the data is not an RSA public key.
        """
        data = pem.encode("utf-8") if isinstance(pem, str) else pem
        try:
            public_key = serialization.load_pem_public_key(data)
        except (ValueError, TypeError) as e:
            raise CodecError(f"Failed to parse public key: {e}") from e

        if not isinstance(public_key, rsa.RSAPublicKey):
            raise CodecError(f"Unsupported public key type: {type(public_key).__name__}")
        return public_key
