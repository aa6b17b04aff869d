"""Prometheus metrics for sync, webhooks, email and uploads."""

from prometheus_client import Counter

sync_requests_total = Counter(
    "sync_requests_total",
    "Sync requests by entity, operation and outcome",
    ["entity", "op", "outcome"],
)

sync_upserted_records_total = Counter(
    "sync_upserted_records_total",
    "Records persisted through batch upsert",
    ["entity"],
)

webhook_events_total = Counter(
    "webhook_events_total",
    "Verified webhook events by type and outcome",
    ["type", "outcome"],
)

emails_sent_total = Counter(
    "emails_sent_total",
    "Transactional email attempts",
    ["kind", "outcome"],
)

signed_uploads_total = Counter(
    "signed_uploads_total",
    "Signed upload URL requests by outcome",
    ["outcome"],
)


class PrometheusSyncMetrics:
    """Prometheus-based sync metrics implementation."""

    def record_request(self, entity: str, op: str, outcome: str) -> None:
        """Count a sync request."""
        sync_requests_total.labels(entity=entity, op=op, outcome=outcome).inc()

    def record_upserted(self, entity: str, count: int) -> None:
        """Count persisted records."""
        if count:
            sync_upserted_records_total.labels(entity=entity).inc(count)
