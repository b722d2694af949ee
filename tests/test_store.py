"""Tests for the filesystem store."""

import os
import stat

import pytest

from authority.domain.errors import StorageError
from authority.domain.states import ArtifactKind
from authority.repository.store import FileStore, artifact_filename


class TestArtifactFilename:
    """Tests for artifact naming."""

    @pytest.mark.parametrize(
        "kind,expected",
        [
            (ArtifactKind.PRIVATE_KEY, "key.pem"),
            (ArtifactKind.PUBLIC_KEY, "key.pub"),
            (ArtifactKind.CSR, "root.test.csr"),
            (ArtifactKind.CERTIFICATE, "root.test.crt"),
            (ArtifactKind.CRL, "root.test.crl"),
        ],
    )
    def test_filenames(self, kind, expected):
        assert artifact_filename(kind, "root.test") == expected


class TestFileStore:
    """Tests for FileStore."""

    def test_ca_exists_requires_ca_directory(self, store, tmp_path):
        """Test that only <cn>/ca marks a CA as known."""
        (tmp_path / "stray").mkdir()

        assert store.ca_exists("stray") is False

        store.create_ca_dirs("root.test")

        assert store.ca_exists("root.test") is True
        assert (tmp_path / "root.test" / "certs").is_dir()

    def test_list_cas_sorted(self, store, tmp_path):
        """Test that listing returns known CAs in sorted order."""
        store.create_ca_dirs("b.test")
        store.create_ca_dirs("a.test")
        (tmp_path / "not-a-ca").mkdir()
        (tmp_path / "file.txt").write_text("x")

        assert store.list_cas() == ["a.test", "b.test"]

    def test_list_cas_missing_base_dir(self, tmp_path):
        """Test listing a base directory that does not exist yet."""
        assert FileStore(tmp_path / "missing").list_cas() == []

    def test_ca_artifact_roundtrip(self, store):
        """Test that saved bytes are read back unchanged."""
        store.create_ca_dirs("root.test")
        path = store.save_ca_artifact("root.test", ArtifactKind.CERTIFICATE, b"cert")

        assert path.name == "root.test.crt"
        assert store.load_ca_artifact("root.test", ArtifactKind.CERTIFICATE) == b"cert"

    def test_load_absent_artifact_returns_none(self, store):
        """Test that a missing file is reported as None, not an error."""
        store.create_ca_dirs("root.test")

        assert store.load_ca_artifact("root.test", ArtifactKind.CRL) is None

    def test_private_key_written_with_0600(self, store):
        """Test that private keys are owner read/write only."""
        store.create_ca_dirs("root.test")
        path = store.save_ca_artifact("root.test", ArtifactKind.PRIVATE_KEY, b"key")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_existing_private_key_mode_is_tightened(self, store):
        """Test that rewriting a key file resets its mode."""
        store.create_ca_dirs("root.test")
        path = store.save_ca_artifact("root.test", ArtifactKind.PRIVATE_KEY, b"key")
        os.chmod(path, 0o644)

        store.save_ca_artifact("root.test", ArtifactKind.PRIVATE_KEY, b"key2")

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert path.read_bytes() == b"key2"

    def test_certificate_artifacts_and_listing(self, store):
        """Test issued-certificate storage under the CA's certs directory."""
        store.create_ca_dirs("root.test")
        store.create_certificate_dir("root.test", "leaf.test")
        path = store.save_certificate_artifact(
            "root.test", "leaf.test", ArtifactKind.PRIVATE_KEY, b"key"
        )

        assert path.parent == store.certificate_dir("root.test", "leaf.test")
        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
        assert store.certificate_exists("root.test", "leaf.test") is True
        assert store.list_certificates("root.test") == ["leaf.test"]
        assert (
            store.load_certificate_artifact("root.test", "leaf.test", ArtifactKind.PRIVATE_KEY)
            == b"key"
        )

    def test_list_certificates_unknown_ca(self, store):
        """Test listing certificates of a CA that has none."""
        assert store.list_certificates("nobody.test") == []

    def test_copy_certificate_to_ca(self, store):
        """Test copying an issued certificate into another CA's slot."""
        store.create_ca_dirs("root.test")
        store.create_ca_dirs("inter.test")
        store.create_certificate_dir("root.test", "inter.test")
        store.save_certificate_artifact("root.test", "inter.test", ArtifactKind.CERTIFICATE, b"new")
        store.save_ca_artifact("inter.test", ArtifactKind.CERTIFICATE, b"old")

        destination = store.copy_certificate_to_ca("root.test", "inter.test")

        assert destination == store.ca_dir("inter.test") / "inter.test.crt"
        assert store.load_ca_artifact("inter.test", ArtifactKind.CERTIFICATE) == b"new"

    def test_copy_certificate_missing_source_raises(self, store):
        """Test that a failed copy raises StorageError."""
        store.create_ca_dirs("inter.test")

        with pytest.raises(StorageError, match="Failed to copy"):
            store.copy_certificate_to_ca("root.test", "inter.test")

    def test_write_into_missing_directory_raises(self, store):
        """Test that OSError is wrapped as StorageError."""
        with pytest.raises(StorageError, match="Failed to write"):
            store.save_ca_artifact("root.test", ArtifactKind.CERTIFICATE, b"cert")

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "a\\b", "a\x00b"])
    def test_unsafe_names_rejected(self, store, name):
        """Test that names escaping the base directory are rejected."""
        with pytest.raises(StorageError, match="Invalid common name"):
            store.ca_dir(name)

    def test_from_settings_uses_capath(self, tmp_path):
        """Test building a store from settings."""
        from shared.config import Settings

        store = FileStore.from_settings(Settings(CAPATH=str(tmp_path)))

        assert store.base_dir == tmp_path
