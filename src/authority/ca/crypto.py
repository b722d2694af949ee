"""Cryptographic helpers shared by the key and certificate codecs.

Provides PEM conversion, name inspection and thumbprint computation.
"""

import hashlib

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

from authority.domain.errors import CodecError


def certificate_to_pem(certificate: x509.Certificate) -> str:
    """Serialize a certificate to a PEM string."""
    return certificate.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def csr_to_pem(csr: x509.CertificateSigningRequest) -> str:
    """Serialize a certificate signing request to a PEM string."""
    return csr.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def crl_to_pem(crl: x509.CertificateRevocationList) -> str:
    """Serialize a certificate revocation list to a PEM string."""
    return crl.public_bytes(serialization.Encoding.PEM).decode("utf-8")


def common_name_of(name: x509.Name) -> str:
    """Return the first common name attribute of an X.509 name.

    Raises:
        CodecError: If the name carries no common name.
    """
    attributes = name.get_attributes_for_oid(NameOID.COMMON_NAME)
    if not attributes:
        raise CodecError(f"Name has no common name: {name.rfc4514_string()}")
    value = attributes[0].value
    return value if isinstance(value, str) else value.decode("utf-8")


def compute_thumbprint(cert_pem: str) -> str:
    """Compute SHA-256 thumbprint of a certificate.

    Args:
        cert_pem: Certificate in PEM format.

    Returns:
        Lowercase hexadecimal SHA-256 thumbprint.

    Raises:
        CodecError: If the certificate cannot be parsed.
    """
    try:
        cert = x509.load_pem_x509_certificate(cert_pem.encode("utf-8"))
        der_bytes = cert.public_bytes(serialization.Encoding.DER)
        return hashlib.sha256(der_bytes).hexdigest().lower()
    except ValueError as e:
        raise CodecError(f"Failed to compute certificate thumbprint: {e}") from e
