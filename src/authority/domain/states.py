from enum import StrEnum


class CAType(StrEnum):
    ROOT = "root"
    INTERMEDIATE = "intermediate"


class RevocationStatus(StrEnum):
    """Revocation states of a serial number within one CA's CRL."""

    UNREVOKED = "unrevoked"
    REVOKED = "revoked"  # Terminal state


class RevocationEvent(StrEnum):
    """Events that trigger revocation transitions."""

    REVOCATION_REQUESTED = "revocation_requested"


class ArtifactState(StrEnum):
    """Outcome of reading one persisted artifact from the store."""

    PRESENT = "present"
    ABSENT = "absent"
    MALFORMED = "malformed"


class ArtifactKind(StrEnum):
    PRIVATE_KEY = "private_key"
    PUBLIC_KEY = "public_key"
    CSR = "csr"
    CERTIFICATE = "certificate"
    CRL = "crl"
