"""Shared fixtures for certificate authority tests."""

import pytest

from authority.ca.certificate_generator import CertificateGenerator
from authority.ca.key_manager import KeyManager
from authority.domain.models import Identity
from authority.repository.store import FileStore

# Small keys keep key generation fast in tests
TEST_KEY_SIZE = 1024


@pytest.fixture
def store(tmp_path):
    return FileStore(tmp_path)


@pytest.fixture
def key_manager():
    return KeyManager(TEST_KEY_SIZE)


@pytest.fixture
def generator():
    return CertificateGenerator()


@pytest.fixture
def ca_identity():
    return Identity(
        organization="Acme",
        organizational_unit="Sec",
        country="NL",
        locality="X",
        province="Y",
        valid=3650,
    )
