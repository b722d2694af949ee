"""Certificate authority orchestration: create, load, issue, sign and revoke.

A CertificateAuthority owns one CA's key pair, certificate and CRL. Every
operation runs synchronously to completion against the FileStore, which is
the only source of truth across processes. No locking is done here; see
authority.repository.locks for the caller-side helper.
"""

import logging
import time
from typing import Callable, TypeVar

from cryptography import x509
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace

from authority.ca.certificate_generator import CertificateGenerator
from authority.ca.crypto import (
    certificate_to_pem,
    common_name_of,
    compute_thumbprint,
    crl_to_pem,
    csr_to_pem,
)
from authority.ca.key_manager import KeyManager, KeyPair
from authority.domain.errors import (
    AlreadyExistsError,
    AlreadyRevokedError,
    ChainPropagationError,
    CodecError,
    MissingInfoError,
    NotFoundError,
    ParentNotSpecifiedError,
    StorageError,
)
from authority.domain.models import Certificate, Identity, LoadedArtifact, RevokedEntry
from authority.domain.state_machine import InvalidTransitionError
from authority.domain.state_machines import RevocationStateMachine
from authority.domain.states import ArtifactKind, ArtifactState, CAType
from authority.metrics import authority_metrics
from authority.repository.store import FileStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

T = TypeVar("T")

STATUS_READY = "Certificate Authority is ready."
STATUS_PENDING_INTERMEDIATE = "Intermediate Certificate Authority not ready, missing Certificate."
STATUS_MISSING_CERTIFICATE = "Certificate Authority not ready, missing Certificate."


class CertificateAuthority:
    """One certificate authority identified by its common name.

    Instances are obtained through :meth:`create`, :meth:`load` or
    :meth:`open`; the common name never changes afterwards.
    """

    def __init__(
        self,
        common_name: str,
        store: FileStore,
        key_manager: KeyManager | None = None,
        generator: CertificateGenerator | None = None,
    ) -> None:
        self._common_name = common_name
        self._store = store
        self._keys = key_manager or KeyManager()
        self._generator = generator or CertificateGenerator()
        self._intermediate = False

        self.private_key: rsa.RSAPrivateKey | None = None
        self.public_key: rsa.RSAPublicKey | None = None
        self.csr: x509.CertificateSigningRequest | None = None
        self.certificate: x509.Certificate | None = None
        self.crl: x509.CertificateRevocationList | None = None

        self.private_key_pem = ""
        self.public_key_pem = ""
        self.csr_pem = ""
        self.certificate_pem = ""
        self.crl_pem = ""

    def __repr__(self) -> str:
        return f"CertificateAuthority(common_name={self._common_name!r}, type={self.ca_type.value})"

    @property
    def common_name(self) -> str:
        return self._common_name

    @property
    def is_intermediate(self) -> bool:
        return self._intermediate

    @property
    def ca_type(self) -> CAType:
        return CAType.INTERMEDIATE if self._intermediate else CAType.ROOT

    @property
    def revoked_entries(self) -> list[RevokedEntry]:
        """Revoked (serial, time) pairs in CRL order; empty when no CRL is present."""
        if self.crl is None:
            return []
        return RevokedEntry.from_crl(self.crl)

    def is_revoked(self, serial_number: int) -> bool:
        return any(entry.serial_number == serial_number for entry in self.revoked_entries)

    def status(self) -> str:
        if self.certificate is not None:
            return STATUS_READY
        if self.csr is not None:
            return STATUS_PENDING_INTERMEDIATE
        return STATUS_MISSING_CERTIFICATE

    def list_certificates(self) -> list[str]:
        """Common names of the certificates this CA has issued or signed."""
        return self._store.list_certificates(self._common_name)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def create(
        cls,
        store: FileStore,
        common_name: str,
        identity: Identity,
        parent_common_name: str = "",
        key_manager: KeyManager | None = None,
        generator: CertificateGenerator | None = None,
    ) -> "CertificateAuthority":
        """Create a new root or intermediate CA and persist it.

        Args:
            store: Store the CA is persisted to.
            common_name: Unique name of the CA; subject CN of its certificate.
            identity: Subject fields, key size, validity and intermediate flag.
            parent_common_name: Signing CA, required when ``identity.intermediate``.

        Returns:
            The created CA with key pair, certificate and an empty CRL.

        Raises:
            AlreadyExistsError: If the store already knows ``common_name``.
            MissingInfoError: If a required identity field is blank.
            ParentNotSpecifiedError: If an intermediate CA has no parent name.
            NotFoundError: If the parent CA does not exist.
        """
        with tracer.start_as_current_span("CertificateAuthority.create") as span:
            span.set_attribute("common_name", common_name)
            span.set_attribute("intermediate", identity.intermediate)

            if store.ca_exists(common_name):
                raise AlreadyExistsError(
                    f"A Certificate Authority with common name {common_name} already exists"
                )

            missing = identity.missing_fields()
            if missing:
                raise MissingInfoError(missing)

            parent: CertificateAuthority | None = None
            if identity.intermediate:
                if not parent_common_name:
                    raise ParentNotSpecifiedError(
                        "parent common name is empty when creating an intermediate CA certificate"
                    )
                span.set_attribute("parent_common_name", parent_common_name)
                parent = cls.load(store, parent_common_name, key_manager, generator)
                parent._require_signing_material()

            ca = cls(common_name, store, key_manager, generator)
            key_pair = ca._keys.generate(identity.key_size)
            ca._set_key_pair(key_pair)

            # nothing is written until the certificate or CSR has been built
            if parent is None:
                certificate = ca._generator.build_self_signed(
                    common_name, identity, key_pair.private_key
                )
            else:
                csr = ca._generator.build_csr(common_name, identity, key_pair.private_key)

            store.create_ca_dirs(common_name)
            store.save_ca_artifact(
                common_name, ArtifactKind.PRIVATE_KEY, key_pair.private_key_pem.encode("utf-8")
            )
            store.save_ca_artifact(
                common_name, ArtifactKind.PUBLIC_KEY, key_pair.public_key_pem.encode("utf-8")
            )

            if parent is None:
                certificate_pem = certificate_to_pem(certificate)
            else:
                ca.csr = csr
                ca.csr_pem = csr_to_pem(csr)
                store.save_ca_artifact(common_name, ArtifactKind.CSR, ca.csr_pem.encode("utf-8"))

                # the parent keeps its own record of the issued CA certificate
                issued = parent._sign(csr, identity.valid, is_ca=True)
                certificate = issued.certificate
                certificate_pem = issued.certificate_pem

            store.save_ca_artifact(
                common_name, ArtifactKind.CERTIFICATE, certificate_pem.encode("utf-8")
            )

            ca.certificate = certificate
            ca.certificate_pem = certificate_pem
            ca._intermediate = parent is not None

            ca._write_crl([])

            thumbprint = compute_thumbprint(certificate_pem)
            span.set_attribute("serial", format(certificate.serial_number, "x"))
            span.set_attribute("thumbprint", thumbprint)
            authority_metrics.record_ca_created(ca.ca_type.value)
            logger.info(
                "ca_created",
                extra={
                    "common_name": common_name,
                    "type": ca.ca_type.value,
                    "parent_common_name": parent_common_name or None,
                    "serial": format(certificate.serial_number, "x"),
                    "thumbprint": thumbprint,
                    "not_after": certificate.not_valid_after_utc.isoformat(),
                },
            )

            return ca

    @classmethod
    def load(
        cls,
        store: FileStore,
        common_name: str,
        key_manager: KeyManager | None = None,
        generator: CertificateGenerator | None = None,
    ) -> "CertificateAuthority":
        """Load a persisted CA.

        The private and public keys are required. CSR, certificate and CRL
        are optional; an absent file leaves the field empty, a malformed one
        fails the load.

        Raises:
            NotFoundError: If the store does not know ``common_name``.
            StorageError: If a required key file is missing or unreadable.
            CodecError: If a present artifact cannot be parsed.
        """
        with tracer.start_as_current_span("CertificateAuthority.load") as span:
            span.set_attribute("common_name", common_name)

            if not store.ca_exists(common_name):
                raise NotFoundError(
                    f"The requested Certificate Authority {common_name} does not exist"
                )

            ca = cls(common_name, store, key_manager, generator)
            description = f"CA {common_name}"

            private_key = _require(
                LoadedArtifact.read(
                    store.load_ca_artifact(common_name, ArtifactKind.PRIVATE_KEY),
                    ca._keys.load_private_key,
                ),
                f"private key of {description}",
            )
            ca.private_key, ca.private_key_pem = private_key.value, private_key.pem

            public_key = _require(
                LoadedArtifact.read(
                    store.load_ca_artifact(common_name, ArtifactKind.PUBLIC_KEY),
                    ca._keys.load_public_key,
                ),
                f"public key of {description}",
            )
            ca.public_key, ca.public_key_pem = public_key.value, public_key.pem

            ca.csr, ca.csr_pem = _optional(
                store.load_ca_artifact(common_name, ArtifactKind.CSR),
                ca._generator.load_csr,
                f"CSR of {description}",
            )
            ca.certificate, ca.certificate_pem = _optional(
                store.load_ca_artifact(common_name, ArtifactKind.CERTIFICATE),
                ca._generator.load_certificate,
                f"certificate of {description}",
            )
            ca.crl, ca.crl_pem = _optional(
                store.load_ca_artifact(common_name, ArtifactKind.CRL),
                ca._generator.load_crl,
                f"CRL of {description}",
            )

            if ca.certificate is not None:
                ca._intermediate = ca.certificate.issuer != ca.certificate.subject
            else:
                ca._intermediate = ca.csr is not None

            span.set_attribute("type", ca.ca_type.value)
            authority_metrics.record_ca_loaded()
            logger.info(
                "ca_loaded",
                extra={
                    "common_name": common_name,
                    "type": ca.ca_type.value,
                    "has_certificate": ca.certificate is not None,
                    "revoked_count": len(ca.revoked_entries),
                },
            )

            return ca

    @classmethod
    def open(
        cls,
        store: FileStore,
        common_name: str,
        identity: Identity,
        parent_common_name: str = "",
        key_manager: KeyManager | None = None,
        generator: CertificateGenerator | None = None,
    ) -> "CertificateAuthority":
        """Load the CA if the store knows it, otherwise create it."""
        if store.ca_exists(common_name):
            return cls.load(store, common_name, key_manager, generator)
        return cls.create(store, common_name, identity, parent_common_name, key_manager, generator)

    # ------------------------------------------------------------------
    # Issuance
    # ------------------------------------------------------------------

    def issue_certificate(self, common_name: str, identity: Identity) -> Certificate:
        """Generate a key pair and CSR for ``common_name`` and sign it.

        Key, public key, CSR and certificate are persisted under
        ``<ca>/certs/<common_name>/``.
        """
        with tracer.start_as_current_span("CertificateAuthority.issue_certificate") as span:
            span.set_attribute("ca_common_name", self._common_name)
            span.set_attribute("common_name", common_name)

            self._require_signing_material()
            start_time = time.time()

            key_pair = self._keys.generate(identity.key_size)
            csr = self._generator.build_csr(common_name, identity, key_pair.private_key)

            self._store.create_certificate_dir(self._common_name, common_name)
            self._store.save_certificate_artifact(
                self._common_name,
                common_name,
                ArtifactKind.PRIVATE_KEY,
                key_pair.private_key_pem.encode("utf-8"),
            )
            self._store.save_certificate_artifact(
                self._common_name,
                common_name,
                ArtifactKind.PUBLIC_KEY,
                key_pair.public_key_pem.encode("utf-8"),
            )

            certificate = self._sign(csr, identity.valid, is_ca=False)

            certificate.private_key = key_pair.private_key
            certificate.private_key_pem = key_pair.private_key_pem
            certificate.public_key = key_pair.public_key
            certificate.public_key_pem = key_pair.public_key_pem

            thumbprint = compute_thumbprint(certificate.certificate_pem)
            span.set_attribute("serial", format(certificate.serial_number, "x"))
            span.set_attribute("thumbprint", thumbprint)
            authority_metrics.record_certificate_issued(time.time() - start_time)
            logger.info(
                "certificate_issued",
                extra={
                    "ca_common_name": self._common_name,
                    "common_name": common_name,
                    "serial": format(certificate.serial_number, "x"),
                    "thumbprint": thumbprint,
                    "not_after": certificate.not_after.isoformat(),
                },
            )

            return certificate

    def sign_csr(
        self,
        csr: x509.CertificateSigningRequest | str | bytes,
        valid_days: int | None = None,
    ) -> Certificate:
        """Sign a caller-supplied CSR.

        When the CSR's subject names another CA known to the store, the
        certificate is issued as a CA certificate and copied into that CA's
        own certificate slot. The copy runs after the signed certificate has
        been persisted and is not rolled back on failure.

        Raises:
            CodecError: If the CSR cannot be parsed or its signature is invalid.
            ChainPropagationError: If signing succeeded but the copy failed;
                the issued certificate is attached to the error.
        """
        with tracer.start_as_current_span("CertificateAuthority.sign_csr") as span:
            span.set_attribute("ca_common_name", self._common_name)

            if not isinstance(csr, x509.CertificateSigningRequest):
                csr = self._generator.load_csr(csr)

            common_name = common_name_of(csr.subject)
            span.set_attribute("common_name", common_name)

            signs_known_ca = common_name != self._common_name and self._store.ca_exists(
                common_name
            )
            start_time = time.time()
            certificate = self._sign(csr, valid_days, is_ca=signs_known_ca)

            authority_metrics.record_csr_signed(time.time() - start_time, signs_known_ca)
            logger.info(
                "csr_signed",
                extra={
                    "ca_common_name": self._common_name,
                    "common_name": common_name,
                    "serial": format(certificate.serial_number, "x"),
                    "ca_certificate": signs_known_ca,
                },
            )

            if signs_known_ca:
                try:
                    self._store.copy_certificate_to_ca(self._common_name, common_name)
                except StorageError as e:
                    logger.error(
                        "chain_propagation_failed",
                        extra={
                            "ca_common_name": self._common_name,
                            "common_name": common_name,
                            "error": str(e),
                        },
                    )
                    raise ChainPropagationError(
                        f"Certificate for {common_name} was signed by {self._common_name} "
                        f"but could not be copied into its CA directory: {e}",
                        certificate,
                    ) from e
                authority_metrics.record_chain_propagated()

            return certificate

    def load_certificate(self, common_name: str) -> Certificate:
        """Load a certificate issued by this CA.

        Whichever of key, public key, CSR and certificate are present are
        loaded; a present but malformed artifact is fatal.

        Raises:
            NotFoundError: If this CA holds no certificate directory for ``common_name``.
            CodecError: If a present artifact cannot be parsed.
        """
        if not self._store.certificate_exists(self._common_name, common_name):
            raise NotFoundError(
                f"The requested Certificate {common_name} does not exist in {self._common_name}"
            )

        description = f"certificate {common_name} of CA {self._common_name}"
        certificate = Certificate(
            common_name=common_name,
            ca_certificate_pem=self.certificate_pem,
            ca_certificate=self.certificate,
        )

        def read(kind: ArtifactKind) -> bytes | None:
            return self._store.load_certificate_artifact(self._common_name, common_name, kind)

        certificate.private_key, certificate.private_key_pem = _optional(
            read(ArtifactKind.PRIVATE_KEY), self._keys.load_private_key, f"private key of {description}"
        )
        certificate.public_key, certificate.public_key_pem = _optional(
            read(ArtifactKind.PUBLIC_KEY), self._keys.load_public_key, f"public key of {description}"
        )
        certificate.csr, certificate.csr_pem = _optional(
            read(ArtifactKind.CSR), self._generator.load_csr, f"CSR of {description}"
        )
        certificate.certificate, certificate.certificate_pem = _optional(
            read(ArtifactKind.CERTIFICATE), self._generator.load_certificate, description
        )

        return certificate

    # ------------------------------------------------------------------
    # Revocation
    # ------------------------------------------------------------------

    def revoke_certificate(self, certificate: Certificate | x509.Certificate) -> None:
        """Add the certificate's serial to this CA's CRL.

        The CRL is rebuilt over the full accumulated list, re-signed,
        persisted and then swapped in memory.

        Raises:
            AlreadyRevokedError: If the serial is already in the CRL; nothing changes.
            NotFoundError: If ``certificate`` carries no signed certificate.
        """
        x509_certificate = (
            certificate.certificate if isinstance(certificate, Certificate) else certificate
        )
        if x509_certificate is None:
            raise NotFoundError("Certificate has no signed certificate to revoke")

        serial_number = x509_certificate.serial_number

        with tracer.start_as_current_span("CertificateAuthority.revoke_certificate") as span:
            span.set_attribute("ca_common_name", self._common_name)
            span.set_attribute("serial", format(serial_number, "x"))

            self._require_signing_material()

            machine = RevocationStateMachine(
                self._common_name, serial_number, self.revoked_entries
            )
            try:
                entries = machine.revoke()
            except InvalidTransitionError as e:
                authority_metrics.record_revocation_rejected()
                raise AlreadyRevokedError(self._common_name, serial_number) from e

            self._write_crl(entries)

            authority_metrics.record_certificate_revoked()
            logger.info(
                "certificate_revoked",
                extra={
                    "ca_common_name": self._common_name,
                    "serial": format(serial_number, "x"),
                    "revoked_count": len(entries),
                },
            )

    def revoke(self, common_name: str) -> None:
        """Revoke a certificate issued by this CA, looked up by common name."""
        certificate = self.load_certificate(common_name)
        if certificate.certificate is None:
            raise NotFoundError(
                f"The requested Certificate {common_name} has no signed certificate"
            )
        self.revoke_certificate(certificate)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _set_key_pair(self, key_pair: KeyPair) -> None:
        self.private_key = key_pair.private_key
        self.public_key = key_pair.public_key
        self.private_key_pem = key_pair.private_key_pem
        self.public_key_pem = key_pair.public_key_pem

    def _require_signing_material(self) -> tuple[x509.Certificate, rsa.RSAPrivateKey]:
        if self.certificate is None or self.private_key is None:
            raise NotFoundError(
                f"Certificate Authority {self._common_name} has no certificate to sign with"
            )
        return self.certificate, self.private_key

    def _sign(
        self,
        csr: x509.CertificateSigningRequest,
        valid_days: int | None,
        is_ca: bool,
    ) -> Certificate:
        """Sign ``csr`` and persist the CSR and certificate under this CA's certs directory."""
        issuer_certificate, issuer_key = self._require_signing_material()

        common_name = common_name_of(csr.subject)
        signed = self._generator.build_signed(
            csr, issuer_certificate, issuer_key, valid_days, is_ca=is_ca
        )
        certificate_pem = certificate_to_pem(signed)
        csr_pem = csr_to_pem(csr)

        self._store.create_certificate_dir(self._common_name, common_name)
        self._store.save_certificate_artifact(
            self._common_name, common_name, ArtifactKind.CSR, csr_pem.encode("utf-8")
        )
        self._store.save_certificate_artifact(
            self._common_name,
            common_name,
            ArtifactKind.CERTIFICATE,
            certificate_pem.encode("utf-8"),
        )

        return Certificate(
            common_name=common_name,
            certificate_pem=certificate_pem,
            csr_pem=csr_pem,
            ca_certificate_pem=self.certificate_pem,
            certificate=signed,
            csr=csr,
            ca_certificate=self.certificate,
        )

    def _write_crl(self, entries: list[RevokedEntry]) -> None:
        issuer_certificate, issuer_key = self._require_signing_material()

        crl = self._generator.build_crl(issuer_certificate, issuer_key, entries)
        crl_pem = crl_to_pem(crl)
        self._store.save_ca_artifact(self._common_name, ArtifactKind.CRL, crl_pem.encode("utf-8"))

        self.crl = crl
        self.crl_pem = crl_pem


def list_cas(store: FileStore) -> list[str]:
    """Common names of every CA known to the store."""
    return store.list_cas()


def _require(artifact: LoadedArtifact[T], description: str) -> LoadedArtifact[T]:
    if artifact.state == ArtifactState.ABSENT:
        raise StorageError(f"Missing {description}")
    if artifact.state == ArtifactState.MALFORMED:
        logger.error("artifact_malformed", extra={"artifact": description, "error": artifact.error})
        raise CodecError(f"Malformed {description}: {artifact.error}")
    return artifact


def _optional(
    raw: bytes | None,
    parser: Callable[[bytes], T],
    description: str,
) -> tuple[T | None, str]:
    artifact = LoadedArtifact.read(raw, parser)
    value = artifact.optional(description)
    return value, artifact.pem if artifact.is_present else ""
