"""X.509 certificate, CSR and CRL generation and parsing.

Certificate attributes:
- Subject: CN=<common name> plus the identity's O, OU, C, L, ST when set
- Validity: now() to now() + valid days, clamped to [1, MAX_VALIDITY_DAYS]
- CA certificates: BasicConstraints CA=true, Key Usage certificate/CRL sign
- Leaf certificates: BasicConstraints CA=false, Key Usage digital signature
  and key encipherment, Extended Key Usage server and client authentication
- Subject Alternative Name: DNS names and e-mail address from the identity
"""

import logging
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from authority.domain.errors import CodecError
from authority.domain.models import Identity, RevokedEntry

logger = logging.getLogger(__name__)


CA_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    key_cert_sign=True,
    crl_sign=True,
    key_encipherment=False,
    content_commitment=False,
    data_encipherment=False,
    key_agreement=False,
    encipher_only=False,
    decipher_only=False,
)

LEAF_KEY_USAGE = x509.KeyUsage(
    digital_signature=True,
    key_encipherment=True,
    key_cert_sign=False,
    crl_sign=False,
    content_commitment=False,
    data_encipherment=False,
    key_agreement=False,
    encipher_only=False,
    decipher_only=False,
)


class CertificateGenerator:
    """Builds and parses X.509 certificates, CSRs and CRLs."""

    DEFAULT_VALIDITY_DAYS = 397
    MAX_VALIDITY_DAYS = 825
    CRL_VALIDITY_DAYS = 7

    def __init__(
        self,
        default_validity_days: int | None = None,
        max_validity_days: int | None = None,
        crl_validity_days: int | None = None,
    ) -> None:
        self.default_validity_days = default_validity_days or self.DEFAULT_VALIDITY_DAYS
        self.max_validity_days = max_validity_days or self.MAX_VALIDITY_DAYS
        self.crl_validity_days = crl_validity_days or self.CRL_VALIDITY_DAYS

    def clamp_validity(self, valid: int | None) -> int:
        """Apply the default when unset and clamp to [1, max_validity_days]."""
        if not valid or valid <= 0:
            return self.default_validity_days
        return max(1, min(valid, self.max_validity_days))

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    def build_name(self, common_name: str, identity: Identity) -> x509.Name:
        """Build a subject name, skipping blank identity fields."""
        fields = [
            (NameOID.COUNTRY_NAME, identity.country),
            (NameOID.STATE_OR_PROVINCE_NAME, identity.province),
            (NameOID.LOCALITY_NAME, identity.locality),
            (NameOID.ORGANIZATION_NAME, identity.organization),
            (NameOID.ORGANIZATIONAL_UNIT_NAME, identity.organizational_unit),
            (NameOID.COMMON_NAME, common_name),
        ]
        try:
            return x509.Name([x509.NameAttribute(oid, value) for oid, value in fields if value])
        except ValueError as e:
            raise CodecError(f"Invalid subject for {common_name}: {e}") from e

    def build_self_signed(
        self,
        common_name: str,
        identity: Identity,
        private_key: rsa.RSAPrivateKey,
    ) -> x509.Certificate:
        """Build a self-signed root CA certificate (subject == issuer)."""
        subject = issuer = self.build_name(common_name, identity)
        valid_days = self.clamp_validity(identity.valid)
        now = datetime.now(timezone.utc)

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(private_key.public_key())
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=valid_days))
            .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
            .add_extension(CA_KEY_USAGE, critical=True)
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(private_key.public_key()),
                critical=False,
            )
        )
        alt_names = self._alternative_names(identity)
        if alt_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(alt_names), critical=False)

        try:
            certificate = builder.sign(private_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            logger.error(
                "self_signed_build_failed",
                extra={"common_name": common_name, "error": str(e)},
            )
            raise CodecError(f"Failed to build self-signed certificate: {e}") from e

        logger.debug(
            "self_signed_certificate_built",
            extra={"common_name": common_name, "valid_days": valid_days},
        )
        return certificate

    def build_csr(
        self,
        common_name: str,
        identity: Identity,
        private_key: rsa.RSAPrivateKey,
    ) -> x509.CertificateSigningRequest:
        """Build a CSR from the identity's subject fields, DNS names and e-mail."""
        builder = x509.CertificateSigningRequestBuilder().subject_name(
            self.build_name(common_name, identity)
        )
        alt_names = self._alternative_names(identity)
        if alt_names:
            builder = builder.add_extension(x509.SubjectAlternativeName(alt_names), critical=False)

        try:
            return builder.sign(private_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            raise CodecError(f"Failed to build CSR for {common_name}: {e}") from e

    def build_signed(
        self,
        csr: x509.CertificateSigningRequest,
        issuer_certificate: x509.Certificate,
        issuer_key: rsa.RSAPrivateKey,
        valid_days: int | None,
        is_ca: bool = False,
    ) -> x509.Certificate:
        """Sign a CSR with the issuer's key and certificate.

        Subject, public key and Subject Alternative Name are taken from the
        CSR; the issuer name is the issuer certificate's subject.

        Raises:
            CodecError: If the CSR signature is invalid or signing fails.
        """
        if not csr.is_signature_valid:
            raise CodecError("CSR signature is invalid")

        valid_days = self.clamp_validity(valid_days)
        now = datetime.now(timezone.utc)
        public_key = csr.public_key()

        builder = (
            x509.CertificateBuilder()
            .subject_name(csr.subject)
            .issuer_name(issuer_certificate.subject)
            .public_key(public_key)  # type: ignore[arg-type]
            .serial_number(x509.random_serial_number())
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=valid_days))
            .add_extension(
                x509.SubjectKeyIdentifier.from_public_key(public_key),  # type: ignore[arg-type]
                critical=False,
            )
            .add_extension(
                x509.AuthorityKeyIdentifier.from_issuer_public_key(issuer_key.public_key()),
                critical=False,
            )
        )

        if is_ca:
            builder = builder.add_extension(
                x509.BasicConstraints(ca=True, path_length=None), critical=True
            ).add_extension(CA_KEY_USAGE, critical=True)
        else:
            builder = (
                builder.add_extension(
                    x509.BasicConstraints(ca=False, path_length=None), critical=True
                )
                .add_extension(LEAF_KEY_USAGE, critical=True)
                .add_extension(
                    x509.ExtendedKeyUsage(
                        [ExtendedKeyUsageOID.SERVER_AUTH, ExtendedKeyUsageOID.CLIENT_AUTH]
                    ),
                    critical=False,
                )
            )

        try:
            san = csr.extensions.get_extension_for_class(x509.SubjectAlternativeName)
            builder = builder.add_extension(san.value, critical=san.critical)
        except x509.ExtensionNotFound:
            pass

        try:
            return builder.sign(issuer_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            logger.error("certificate_signing_failed", extra={"error": str(e)})
            raise CodecError(f"Failed to sign certificate: {e}") from e

    def build_crl(
        self,
        issuer_certificate: x509.Certificate,
        issuer_key: rsa.RSAPrivateKey,
        revoked_entries: list[RevokedEntry],
    ) -> x509.CertificateRevocationList:
        """Build a complete CRL snapshot over every revoked entry.

        The CRL number equals the entry count, so it grows with each revocation.
        """
        now = datetime.now(timezone.utc)
        builder = (
            x509.CertificateRevocationListBuilder()
            .issuer_name(issuer_certificate.subject)
            .last_update(now)
            .next_update(now + timedelta(days=self.crl_validity_days))
            .add_extension(x509.CRLNumber(len(revoked_entries)), critical=False)
        )
        for entry in revoked_entries:
            builder = builder.add_revoked_certificate(
                x509.RevokedCertificateBuilder()
                .serial_number(entry.serial_number)
                .revocation_date(entry.revoked_at)
                .build()
            )

        try:
            return builder.sign(issuer_key, hashes.SHA256())
        except (ValueError, TypeError) as e:
            logger.error("crl_build_failed", extra={"error": str(e)})
            raise CodecError(f"Failed to build CRL: {e}") from e

    # ------------------------------------------------------------------
    # Parsers
    # ------------------------------------------------------------------

    def load_certificate(self, pem: str | bytes) -> x509.Certificate:
        try:
            return x509.load_pem_x509_certificate(_to_bytes(pem))
        except ValueError as e:
            raise CodecError(f"Failed to parse certificate: {e}") from e

    def load_csr(self, pem: str | bytes) -> x509.CertificateSigningRequest:
        try:
            return x509.load_pem_x509_csr(_to_bytes(pem))
        except ValueError as e:
            raise CodecError(f"Failed to parse CSR: {e}") from e

    def load_crl(self, pem: str | bytes) -> x509.CertificateRevocationList:
        try:
            return x509.load_pem_x509_crl(_to_bytes(pem))
        except ValueError as e:
            raise CodecError(f"Failed to parse CRL: {e}") from e

    def verify_issued_by(self, certificate: x509.Certificate, issuer: x509.Certificate) -> None:
        """Verify that ``certificate`` was signed by ``issuer``.

        Raises:
            CodecError: If the issuer name or signature does not match.
        """
        try:
            certificate.verify_directly_issued_by(issuer)
        except (ValueError, TypeError, InvalidSignature) as e:
            raise CodecError(f"Certificate was not issued by {issuer.subject.rfc4514_string()}") from e

    def _alternative_names(self, identity: Identity) -> list[x509.GeneralName]:
        """DNS names and e-mail address of the identity.

        Raises:
            CodecError: If a name is not ASCII (IDNs must be given as A-labels).
        """
        try:
            names: list[x509.GeneralName] = [x509.DNSName(name) for name in identity.dns_names]
            if identity.email:
                names.append(x509.RFC822Name(identity.email))
        except ValueError as e:
            raise CodecError(f"Invalid subject alternative name: {e}") from e
        return names


def _to_bytes(pem: str | bytes) -> bytes:
    return pem.encode("utf-8") if isinstance(pem, str) else pem
