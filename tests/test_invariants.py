"""Tests for invariant enforcement on CA creation.

Validation happens before anything is written, so a rejected create leaves
the store untouched.
"""

import pytest

from authority.domain.errors import (
    MissingInfoError,
    NotFoundError,
    ParentNotSpecifiedError,
)
from authority.domain.models import Identity
from authority.services.certificate_authority import CertificateAuthority


def _create(store, key_manager, generator, common_name, identity, parent=""):
    return CertificateAuthority.create(
        store, common_name, identity, parent, key_manager=key_manager, generator=generator
    )


class TestRequiredIdentityFields:
    """Every CA needs organization, unit, country, locality and province."""

    @pytest.mark.parametrize("field", list(Identity.REQUIRED_CA_FIELDS))
    def test_missing_field_rejected(self, store, key_manager, generator, ca_identity, field):
        identity = ca_identity.model_copy(update={field: ""})

        with pytest.raises(MissingInfoError) as exc_info:
            _create(store, key_manager, generator, "root.test", identity)

        assert exc_info.value.missing == [field]
        assert store.ca_exists("root.test") is False
        assert store.list_cas() == []

    def test_whitespace_counts_as_missing(self, store, key_manager, generator, ca_identity):
        identity = ca_identity.model_copy(update={"locality": "   "})

        with pytest.raises(MissingInfoError, match="locality"):
            _create(store, key_manager, generator, "root.test", identity)

    def test_all_missing_listed(self):
        assert Identity().missing_fields() == list(Identity.REQUIRED_CA_FIELDS)


class TestIntermediateParent:
    """Intermediates require an existing parent CA."""

    def test_parent_not_specified(self, store, key_manager, generator, ca_identity):
        identity = ca_identity.model_copy(update={"intermediate": True})

        with pytest.raises(ParentNotSpecifiedError):
            _create(store, key_manager, generator, "inter.test", identity)

        assert store.ca_exists("inter.test") is False

    def test_parent_not_found(self, store, key_manager, generator, ca_identity):
        identity = ca_identity.model_copy(update={"intermediate": True})

        with pytest.raises(NotFoundError, match="missing.test"):
            _create(store, key_manager, generator, "inter.test", identity, "missing.test")

        assert store.ca_exists("inter.test") is False

    def test_parent_ignored_for_root(self, store, key_manager, generator, ca_identity):
        """A parent name on a root identity is not resolved."""
        ca = _create(store, key_manager, generator, "root.test", ca_identity, "missing.test")

        assert ca.is_intermediate is False


class TestIdentityValidation:
    """Pydantic-level validation of identity input."""

    def test_country_longer_than_two_rejected(self):
        with pytest.raises(ValueError):
            Identity(country="NLD")

    def test_negative_key_size_rejected(self):
        with pytest.raises(ValueError):
            Identity(key_size=-1)
