"""OpenTelemetry metrics for the certificate authority module."""

from collections.abc import Iterator

from opentelemetry import metrics

meter = metrics.get_meter("authority")

# CA lifecycle counters
cas_created_total = meter.create_counter(
    name="authority_cas_created_total",
    description="Total certificate authorities created",
    unit="1",
)

cas_loaded_total = meter.create_counter(
    name="authority_cas_loaded_total",
    description="Total certificate authorities loaded from the store",
    unit="1",
)

# Key generation
keys_generated_total = meter.create_counter(
    name="authority_keys_generated_total",
    description="Total key pairs generated",
    unit="1",
)

key_generation_duration = meter.create_histogram(
    name="authority_key_generation_duration_seconds",
    description="Key pair generation duration in seconds",
    unit="s",
)

# Issuance counters
certificates_issued_total = meter.create_counter(
    name="authority_certificates_issued_total",
    description="Total certificates issued with a freshly generated key",
    unit="1",
)

csrs_signed_total = meter.create_counter(
    name="authority_csrs_signed_total",
    description="Total caller-supplied CSRs signed",
    unit="1",
)

certificate_signing_duration = meter.create_histogram(
    name="authority_certificate_signing_duration_seconds",
    description="Certificate signing duration in seconds",
    unit="s",
)

chain_propagations_total = meter.create_counter(
    name="authority_chain_propagations_total",
    description="CA certificates copied into the signed CA's own slot",
    unit="1",
)

# Revocation counters
certificates_revoked_total = meter.create_counter(
    name="authority_certificates_revoked_total",
    description="Total certificates revoked",
    unit="1",
)

revocations_rejected_total = meter.create_counter(
    name="authority_revocations_rejected_total",
    description="Revocation attempts rejected because the serial was already revoked",
    unit="1",
)

# Bootstrap gauge
_bootstrap_ca: str | None = None


def _get_bootstrap_ca(
    options: metrics.CallbackOptions,
) -> Iterator[metrics.Observation]:
    """Callback to report whether a bootstrap CA is available."""
    if _bootstrap_ca:
        yield metrics.Observation(1, {"common_name": _bootstrap_ca})
    else:
        yield metrics.Observation(0, {"common_name": "none"})


bootstrap_ca_gauge = meter.create_observable_gauge(
    name="authority_bootstrap_ca_ready",
    description="Bootstrap CA created or loaded (1=yes, 0=no)",
    unit="1",
    callbacks=[_get_bootstrap_ca],
)


class AuthorityMetrics:
    """Facade for authority metrics with proper labels."""

    def record_ca_created(self, ca_type: str) -> None:
        """Record CA creation. Labels: type=root|intermediate"""
        cas_created_total.add(1, {"type": ca_type})

    def record_ca_loaded(self) -> None:
        cas_loaded_total.add(1)

    def record_key_generated(self, key_size: int, duration_seconds: float) -> None:
        keys_generated_total.add(1, {"key_size": key_size})
        key_generation_duration.record(duration_seconds)

    def record_certificate_issued(self, duration_seconds: float) -> None:
        """Record issuance of a certificate with a generated key."""
        certificates_issued_total.add(1)
        certificate_signing_duration.record(duration_seconds, {"source": "issue"})

    def record_csr_signed(self, duration_seconds: float, is_ca: bool) -> None:
        """Record signing of a caller-supplied CSR. Labels: ca=true|false"""
        csrs_signed_total.add(1, {"ca": str(is_ca).lower()})
        certificate_signing_duration.record(duration_seconds, {"source": "csr"})

    def record_chain_propagated(self) -> None:
        chain_propagations_total.add(1)

    def record_certificate_revoked(self) -> None:
        certificates_revoked_total.add(1)

    def record_revocation_rejected(self) -> None:
        revocations_rejected_total.add(1)

    def record_bootstrap_ca(self, common_name: str) -> None:
        """Mark the bootstrap CA as ready."""
        global _bootstrap_ca
        _bootstrap_ca = common_name


# Singleton instance
authority_metrics = AuthorityMetrics()
