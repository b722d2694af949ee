"""Cryptographic building blocks for the certificate authority.

This module provides:
- RSA key pair generation and PEM (de)serialization
- X.509 name, CSR, certificate and CRL construction
- PEM encoders and thumbprints
"""

from authority.ca.certificate_generator import CertificateGenerator
from authority.ca.key_manager import KeyManager, KeyPair

__all__ = ["CertificateGenerator", "KeyManager", "KeyPair"]
