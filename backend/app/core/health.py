"""
Health check aggregation — deep health probe for all subsystems.

Checks:
    • Storage (volunteer pool readable)
    • Disaster feed cache (freshness, last per-source outcome)
    • Notification channel configuration (SMS provider)

Returns a structured health report suitable for:
    - Kubernetes liveness/readiness probes
    - Load balancer health checks
    - Monitoring dashboards
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from backend.app.core.config import Settings, settings as default_settings
from backend.app.feeds.aggregator import DisasterFeedAggregator
from backend.app.storage.base import Storage

logger = logging.getLogger(__name__)

SMS_PROVIDERS = ("simulation", "webhook")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"  # partial functionality
    UNHEALTHY = "unhealthy"


@dataclass
class ComponentHealth:
    name: str
    status: HealthStatus = HealthStatus.HEALTHY
    latency_ms: float = 0.0
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
        }
        if self.message:
            d["message"] = self.message
        if self.details:
            d["details"] = self.details
        return d


@dataclass
class HealthReport:
    status: HealthStatus = HealthStatus.HEALTHY
    version: str = default_settings.APP_VERSION
    environment: str = default_settings.ENVIRONMENT
    timestamp: str = ""
    uptime_seconds: float = 0.0
    components: List[ComponentHealth] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "version": self.version,
            "environment": self.environment,
            "timestamp": self.timestamp or datetime.now(timezone.utc).isoformat(),
            "uptime_seconds": round(self.uptime_seconds, 1),
            "components": [c.to_dict() for c in self.components],
        }


# Track application start time
_start_time = time.monotonic()


async def check_storage(storage: Optional[Storage]) -> ComponentHealth:
    """Storage answers the matcher's volunteer query."""
    comp = ComponentHealth(name="storage")
    start = time.monotonic()
    if storage is None:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "Storage not initialised"
    else:
        try:
            volunteers = await storage.get_available_volunteers()
            comp.message = f"{len(volunteers)} volunteers available"
            comp.details = {"backend": type(storage).__name__, **storage.counts()}
        except Exception as e:
            comp.status = HealthStatus.UNHEALTHY
            comp.message = str(e)
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_disaster_feeds(aggregator: Optional[DisasterFeedAggregator]) -> ComponentHealth:
    """Cache state only; never triggers an upstream fetch."""
    comp = ComponentHealth(name="disaster_feeds")
    start = time.monotonic()
    if aggregator is None:
        comp.status = HealthStatus.DEGRADED
        comp.message = "Aggregator not initialised"
    else:
        info = aggregator.cache_info()
        comp.details = info
        source_states = info.get("sources", {})
        if not info["cached"]:
            comp.message = "Cache empty; populated on first read"
        elif not info["fresh"]:
            comp.status = HealthStatus.DEGRADED
            comp.message = "Serving stale snapshot"
        elif source_states and all(s != "ok" for s in source_states.values()):
            comp.status = HealthStatus.DEGRADED
            comp.message = "All sources failed on last refresh"
        else:
            comp.message = f"{info['record_count']} records cached"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def check_notification_channel(cfg: Settings) -> ComponentHealth:
    """SMS provider is known and, for webhooks, has a target URL."""
    comp = ComponentHealth(name="notification_channel")
    start = time.monotonic()
    comp.details = {"provider": cfg.SMS_PROVIDER}
    if cfg.SMS_PROVIDER not in SMS_PROVIDERS:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = f"Unknown SMS provider: {cfg.SMS_PROVIDER}"
    elif cfg.SMS_PROVIDER == "webhook" and not cfg.SMS_WEBHOOK_URL:
        comp.status = HealthStatus.UNHEALTHY
        comp.message = "SMS_WEBHOOK_URL is not configured"
    elif cfg.SMS_PROVIDER == "simulation":
        comp.message = "Simulated delivery (no messages leave the server)"
    else:
        comp.message = "Webhook gateway configured"
    comp.latency_ms = (time.monotonic() - start) * 1000
    return comp


async def run_health_check(
    storage: Optional[Storage] = None,
    aggregator: Optional[DisasterFeedAggregator] = None,
    cfg: Settings = default_settings,
) -> HealthReport:
    """Run all health checks and aggregate into a report."""
    report = HealthReport(
        timestamp=datetime.now(timezone.utc).isoformat(),
        uptime_seconds=time.monotonic() - _start_time,
    )

    checks = [
        check_storage(storage),
        check_disaster_feeds(aggregator),
        check_notification_channel(cfg),
    ]

    for coro in checks:
        comp = await coro
        report.components.append(comp)

    # Aggregate status
    statuses = [c.status for c in report.components]
    if HealthStatus.UNHEALTHY in statuses:
        report.status = HealthStatus.UNHEALTHY
    elif HealthStatus.DEGRADED in statuses:
        report.status = HealthStatus.DEGRADED
    else:
        report.status = HealthStatus.HEALTHY

    return report
