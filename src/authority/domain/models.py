"""Domain models for the certificate authority."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, ClassVar, Generic, TypeVar

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from pydantic import BaseModel, Field

from authority.domain.errors import CodecError
from authority.domain.states import ArtifactState

T = TypeVar("T")


class Identity(BaseModel):
    """Subject information used to create a CA or issue a certificate."""

    organization: str = ""
    organizational_unit: str = ""
    country: str = Field("", max_length=2)
    locality: str = ""
    province: str = ""
    email: str = ""
    dns_names: list[str] = Field(default_factory=list)
    intermediate: bool = False
    key_size: int = Field(0, ge=0)
    valid: int = 0

    REQUIRED_CA_FIELDS: ClassVar[tuple[str, ...]] = (
        "organization",
        "organizational_unit",
        "country",
        "locality",
        "province",
    )

    def missing_fields(self) -> list[str]:
        """Return the names of required CA fields that are blank."""
        return [name for name in self.REQUIRED_CA_FIELDS if not getattr(self, name).strip()]


@dataclass(frozen=True)
class RevokedEntry:
    """A (serial number, revocation time) pair in a CRL."""

    serial_number: int
    revoked_at: datetime

    @classmethod
    def from_crl(cls, crl: x509.CertificateRevocationList) -> list["RevokedEntry"]:
        """Extract the revoked entries of a CRL in their recorded order."""
        return [cls(entry.serial_number, entry.revocation_date_utc) for entry in crl]


@dataclass
class LoadedArtifact(Generic[T]):
    """Explicit result of reading one optional artifact.

    PRESENT carries both the PEM text and the parsed value, MALFORMED
    carries the PEM text and the parse error, ABSENT carries nothing.
    """

    state: ArtifactState
    pem: str = ""
    value: T | None = None
    error: str | None = None

    @classmethod
    def read(cls, raw: bytes | None, parser: Callable[[bytes], T]) -> "LoadedArtifact[T]":
        if raw is None:
            return cls(ArtifactState.ABSENT)
        pem = raw.decode("utf-8", errors="replace")
        try:
            return cls(ArtifactState.PRESENT, pem=pem, value=parser(raw))
        except CodecError as e:
            return cls(ArtifactState.MALFORMED, pem=pem, error=str(e))

    @property
    def is_present(self) -> bool:
        return self.state == ArtifactState.PRESENT

    def optional(self, description: str) -> T | None:
        """Return the value, None when absent; malformed data is fatal."""
        if self.state == ArtifactState.MALFORMED:
            raise CodecError(f"Malformed {description}: {self.error}")
        return self.value


@dataclass
class Certificate:
    """An issued certificate together with its key material and issuer certificate.

    The issuer's certificate is held as a read-only copy for chain
    verification; the issuer's private key is never stored here.
    """

    common_name: str
    certificate_pem: str = ""
    csr_pem: str = ""
    private_key_pem: str = ""
    public_key_pem: str = ""
    ca_certificate_pem: str = ""
    certificate: x509.Certificate | None = field(default=None, repr=False)
    csr: x509.CertificateSigningRequest | None = field(default=None, repr=False)
    private_key: rsa.RSAPrivateKey | None = field(default=None, repr=False)
    public_key: rsa.RSAPublicKey | None = field(default=None, repr=False)
    ca_certificate: x509.Certificate | None = field(default=None, repr=False)

    @property
    def serial_number(self) -> int | None:
        return self.certificate.serial_number if self.certificate is not None else None

    @property
    def not_after(self) -> datetime | None:
        return self.certificate.not_valid_after_utc if self.certificate is not None else None
