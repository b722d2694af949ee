"""Bootstrap service for first-run initialization."""

import logging

from shared.config import Settings
from shared.logging import setup_logging
from shared.metrics import setup_metrics
from shared.tracing import setup_tracing

from authority.ca.certificate_generator import CertificateGenerator
from authority.ca.key_manager import KeyManager
from authority.domain.models import Identity
from authority.metrics import authority_metrics
from authority.repository.store import FileStore
from authority.services.certificate_authority import CertificateAuthority

logger = logging.getLogger(__name__)


def initialize(settings: Settings) -> FileStore:
    """Set up logging, tracing and metrics, then open the store at ``CAPATH``."""
    setup_logging(settings.LOG_LEVEL)
    setup_tracing(settings.APP_NAME)
    setup_metrics(settings.APP_NAME)

    store = FileStore.from_settings(settings)
    logger.info(
        "authority_initialized",
        extra={"capath": str(store.base_dir), "environment": settings.APP_ENV},
    )
    return store


def collaborators(settings: Settings) -> tuple[KeyManager, CertificateGenerator]:
    """Key manager and certificate generator configured from settings."""
    key_manager = KeyManager(settings.DEFAULT_KEY_SIZE)
    generator = CertificateGenerator(
        default_validity_days=settings.DEFAULT_VALIDITY_DAYS,
        max_validity_days=settings.MAX_VALIDITY_DAYS,
        crl_validity_days=settings.CRL_VALIDITY_DAYS,
    )
    return key_manager, generator


def bootstrap_ca_if_needed(store: FileStore, settings: Settings) -> CertificateAuthority | None:
    """
    Create or load the bootstrap root CA from settings.

    Environment variables:
    - BOOTSTRAP_CA_COMMON_NAME: Required to trigger bootstrap
    - BOOTSTRAP_CA_ORGANIZATION, BOOTSTRAP_CA_ORGANIZATIONAL_UNIT,
      BOOTSTRAP_CA_COUNTRY, BOOTSTRAP_CA_LOCALITY, BOOTSTRAP_CA_PROVINCE:
      Subject fields, all required when the CA does not exist yet
    - BOOTSTRAP_CA_VALID_DAYS: Validity in days (default applies when 0)

    Returns:
        The bootstrap CA, or None if not configured
    """
    common_name = settings.BOOTSTRAP_CA_COMMON_NAME
    if not common_name:
        logger.debug("bootstrap_skipped", extra={"reason": "no_bootstrap_config"})
        return None

    identity = Identity(
        organization=settings.BOOTSTRAP_CA_ORGANIZATION or "",
        organizational_unit=settings.BOOTSTRAP_CA_ORGANIZATIONAL_UNIT or "",
        country=settings.BOOTSTRAP_CA_COUNTRY or "",
        locality=settings.BOOTSTRAP_CA_LOCALITY or "",
        province=settings.BOOTSTRAP_CA_PROVINCE or "",
        valid=settings.BOOTSTRAP_CA_VALID_DAYS,
    )

    existed = store.ca_exists(common_name)
    logger.info("bootstrap_started", extra={"common_name": common_name, "existing": existed})

    key_manager, generator = collaborators(settings)
    ca = CertificateAuthority.open(
        store,
        common_name,
        identity,
        key_manager=key_manager,
        generator=generator,
    )

    authority_metrics.record_bootstrap_ca(common_name)
    logger.info(
        "bootstrap_completed",
        extra={"common_name": common_name, "newly_created": not existed, "status": ca.status()},
    )

    return ca
