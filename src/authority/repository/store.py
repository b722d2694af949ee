"""Filesystem store for CA and certificate artifacts, keyed by common name.

Layout under the base directory:

    <cn>/ca/key.pem, key.pub, <cn>.csr, <cn>.crt, <cn>.crl
    <cn>/certs/<cert cn>/key.pem, key.pub, <cert cn>.csr, <cert cn>.crt

A name is known to the store iff ``<base>/<name>/ca`` is a directory.
The store does no locking; callers serialize access per common name.
"""

import logging
import os
import shutil
from pathlib import Path

from authority.domain.errors import StorageError
from authority.domain.states import ArtifactKind

logger = logging.getLogger(__name__)

CA_DIR = "ca"
CERTS_DIR = "certs"
PRIVATE_KEY_MODE = 0o600


def artifact_filename(kind: ArtifactKind, common_name: str) -> str:
    """File name of an artifact belonging to ``common_name``."""
    if kind == ArtifactKind.PRIVATE_KEY:
        return "key.pem"
    if kind == ArtifactKind.PUBLIC_KEY:
        return "key.pub"
    extensions = {
        ArtifactKind.CSR: ".csr",
        ArtifactKind.CERTIFICATE: ".crt",
        ArtifactKind.CRL: ".crl",
    }
    return common_name + extensions[kind]


class FileStore:
    """Reads and writes raw artifact bytes under an explicit base directory."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir)

    @classmethod
    def from_settings(cls, settings) -> "FileStore":
        return cls(settings.CAPATH)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def ca_dir(self, common_name: str) -> Path:
        return self.base_dir / _safe_name(common_name) / CA_DIR

    def certs_dir(self, common_name: str) -> Path:
        return self.base_dir / _safe_name(common_name) / CERTS_DIR

    def certificate_dir(self, ca_common_name: str, common_name: str) -> Path:
        return self.certs_dir(ca_common_name) / _safe_name(common_name)

    # ------------------------------------------------------------------
    # Existence and listing
    # ------------------------------------------------------------------

    def ca_exists(self, common_name: str) -> bool:
        return self.ca_dir(common_name).is_dir()

    def certificate_exists(self, ca_common_name: str, common_name: str) -> bool:
        return self.certificate_dir(ca_common_name, common_name).is_dir()

    def list_cas(self) -> list[str]:
        """List the common names of all CAs known to the store."""
        if not self.base_dir.is_dir():
            return []
        return sorted(
            entry.name
            for entry in self.base_dir.iterdir()
            if entry.is_dir() and (entry / CA_DIR).is_dir()
        )

    def list_certificates(self, ca_common_name: str) -> list[str]:
        """List the common names of certificates issued by a CA."""
        certs_dir = self.certs_dir(ca_common_name)
        if not certs_dir.is_dir():
            return []
        return sorted(entry.name for entry in certs_dir.iterdir() if entry.is_dir())

    # ------------------------------------------------------------------
    # Directory creation
    # ------------------------------------------------------------------

    def create_ca_dirs(self, common_name: str) -> None:
        """Create the CA's own directory and its issued-certificates directory."""
        self._mkdir(self.ca_dir(common_name))
        self._mkdir(self.certs_dir(common_name))

    def create_certificate_dir(self, ca_common_name: str, common_name: str) -> None:
        self._mkdir(self.certificate_dir(ca_common_name, common_name))

    # ------------------------------------------------------------------
    # CA artifacts
    # ------------------------------------------------------------------

    def save_ca_artifact(self, common_name: str, kind: ArtifactKind, data: bytes) -> Path:
        path = self.ca_dir(common_name) / artifact_filename(kind, common_name)
        self._write(path, data, private=kind == ArtifactKind.PRIVATE_KEY)
        return path

    def load_ca_artifact(self, common_name: str, kind: ArtifactKind) -> bytes | None:
        """Read a CA artifact; None when the file does not exist."""
        return self._read(self.ca_dir(common_name) / artifact_filename(kind, common_name))

    # ------------------------------------------------------------------
    # Issued certificate artifacts
    # ------------------------------------------------------------------

    def save_certificate_artifact(
        self,
        ca_common_name: str,
        common_name: str,
        kind: ArtifactKind,
        data: bytes,
    ) -> Path:
        path = self.certificate_dir(ca_common_name, common_name) / artifact_filename(
            kind, common_name
        )
        self._write(path, data, private=kind == ArtifactKind.PRIVATE_KEY)
        return path

    def load_certificate_artifact(
        self,
        ca_common_name: str,
        common_name: str,
        kind: ArtifactKind,
    ) -> bytes | None:
        return self._read(
            self.certificate_dir(ca_common_name, common_name) / artifact_filename(kind, common_name)
        )

    def copy_certificate_to_ca(self, ca_common_name: str, common_name: str) -> Path:
        """Copy a certificate issued by ``ca_common_name`` into CA ``common_name``'s own slot."""
        source = self.certificate_dir(ca_common_name, common_name) / artifact_filename(
            ArtifactKind.CERTIFICATE, common_name
        )
        destination = self.ca_dir(common_name) / artifact_filename(
            ArtifactKind.CERTIFICATE, common_name
        )
        try:
            shutil.copyfile(source, destination)
        except OSError as e:
            logger.error(
                "certificate_copy_failed",
                extra={"source": str(source), "destination": str(destination), "error": str(e)},
            )
            raise StorageError(f"Failed to copy {source} to {destination}: {e}") from e

        logger.info(
            "certificate_copied",
            extra={"source": str(source), "destination": str(destination)},
        )
        return destination

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _mkdir(self, path: Path) -> None:
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {path}: {e}") from e

    def _write(self, path: Path, data: bytes, private: bool = False) -> None:
        try:
            if private:
                fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, PRIVATE_KEY_MODE)
                with os.fdopen(fd, "wb") as fh:
                    fh.write(data)
                # key files are always 0600, pre-existing ones included
                os.chmod(path, PRIVATE_KEY_MODE)
            else:
                path.write_bytes(data)
        except OSError as e:
            logger.error("artifact_write_failed", extra={"path": str(path), "error": str(e)})
            raise StorageError(f"Failed to write {path}: {e}") from e

        logger.debug("artifact_written", extra={"path": str(path), "size": len(data)})

    def _read(self, path: Path) -> bytes | None:
        try:
            return path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("artifact_read_failed", extra={"path": str(path), "error": str(e)})
            raise StorageError(f"Failed to read {path}: {e}") from e


def _safe_name(common_name: str) -> str:
    """Reject names that would escape the base directory."""
    if (
        not common_name
        or common_name in (".", "..")
        or "/" in common_name
        or "\\" in common_name
        or "\x00" in common_name
    ):
        raise StorageError(f"Invalid common name for storage: {common_name!r}")
    return common_name
