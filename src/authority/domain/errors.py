"""Error hierarchy for certificate authority operations."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authority.domain.models import Certificate


class AuthorityError(Exception):
    """Base class for every error raised by the certificate authority core."""

    pass


class MissingInfoError(AuthorityError):
    """Raised when required identity fields are blank."""

    def __init__(self, missing: list[str]):
        self.missing = missing
        super().__init__(
            "all CA details ('Organization', 'Organizational Unit', 'Country', "
            f"'Locality', 'Province') are required, missing: {', '.join(missing)}"
        )


class AlreadyExistsError(AuthorityError):
    """Raised when a CA with the same common name is already stored."""

    pass


class NotFoundError(AuthorityError):
    """Raised when a CA or certificate does not exist in the store."""

    pass


class ParentNotSpecifiedError(AuthorityError):
    """Raised when an intermediate CA is created without a parent common name."""

    pass


class AlreadyRevokedError(AuthorityError):
    """Raised when a serial number is already present in the CA's CRL."""

    def __init__(self, common_name: str, serial_number: int):
        self.common_name = common_name
        self.serial_number = serial_number
        super().__init__(
            f"Certificate with serial {serial_number:x} is already revoked by {common_name}"
        )


class CodecError(AuthorityError):
    """Raised when PEM/DER data is malformed or a crypto operation fails."""

    pass


class StorageError(AuthorityError):
    """Raised when the filesystem store cannot be read or written."""

    pass


class ChainPropagationError(StorageError):
    """Raised when a signed CA certificate could not be copied into the CA's own slot.

    Signing has already been committed when this is raised; ``certificate``
    holds the issued certificate so the caller can retry the copy.
    """

    def __init__(self, message: str, certificate: "Certificate"):
        self.certificate = certificate
        super().__init__(message)
