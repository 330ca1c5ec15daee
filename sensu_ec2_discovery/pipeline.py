"""One discovery pass: validate -> enumerate regions -> fetch -> map -> register -> report."""

from __future__ import annotations

import enum
import logging
import signal
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from types import FrameType

from .config import AppConfig
from .discovery import InstanceSource
from .discovery.filters import build_filters, parse_criteria
from .discovery.models import Criteria, Filter
from .discovery.regions import RegionEnumerator
from .exceptions import ConfigurationError, DiscoveryError
from .registry.auth import RegistryEndpoint
from .registry.client import RegistryClient, credential_method
from .registry.entity import entity_from_instance
from .registry.models import OutcomeKind, RegistrationOutcome

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1

ALL_REGIONS = "all-regions"  # failure key when region enumeration itself fails


class PassState(str, enum.Enum):
    INIT = "init"
    VALIDATING = "validating"
    DISCOVERING = "discovering"
    REPORTING = "reporting"
    DONE = "done"


@dataclass
class PassSummary:
    """Counters for one pass. ``record`` and ``record_region_*`` are thread-safe."""

    created: int = 0
    already_exists: int = 0
    failed: int = 0
    unreachable: int = 0
    regions_processed: list[str] = field(default_factory=list)
    region_failures: dict[str, str] = field(default_factory=dict)
    cancelled: bool = False
    elapsed_seconds: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record(self, outcome: RegistrationOutcome) -> None:
        with self._lock:
            if outcome.kind is OutcomeKind.CREATED:
                self.created += 1
            elif outcome.kind is OutcomeKind.ALREADY_EXISTS:
                self.already_exists += 1
            else:
                self.failed += 1
                if outcome.unreachable:
                    self.unreachable += 1

    def record_region_done(self, region: str) -> None:
        with self._lock:
            self.regions_processed.append(region)

    def record_region_failure(self, region: str, reason: str) -> None:
        with self._lock:
            self.region_failures[region] = reason

    @property
    def attempted(self) -> int:
        return self.created + self.already_exists + self.failed

    @property
    def registry_unreachable(self) -> bool:
        """True when upserts were attempted and none of them got an HTTP response."""
        return self.attempted > 0 and self.unreachable == self.attempted

    @property
    def status(self) -> str:
        if self.registry_unreachable:
            return "registry_unreachable"
        if self.cancelled:
            return "cancelled"
        if self.failed or self.region_failures:
            return "partial"
        return "ok"

    @property
    def exit_code(self) -> int:
        return EXIT_FAILURE if self.registry_unreachable else EXIT_OK


class Pipeline:
    """Drives a single pass. Configuration is passed in, never read from globals."""

    def __init__(
        self,
        config: AppConfig,
        source: InstanceSource | None = None,
        registry: RegistryClient | None = None,
    ):
        self._config = config
        self._source = source
        self._registry = registry
        self._cancelled = threading.Event()
        self.state = PassState.INIT
        self._criteria: Criteria | None = None
        self._filters: list[Filter] = []

    # ── Validating ──────────────────────────────────────────────────

    def validate(self) -> list[Filter]:
        """Build criteria and filters and check credentials. Makes no network calls."""
        self.state = PassState.VALIDATING
        ec2 = self._config.ec2
        self._criteria = parse_criteria(ec2.instance_states, ec2.instance_regions, ec2.instance_tags)
        self._filters = build_filters(self._criteria)

        registry_cfg = self._config.registry
        endpoints = [RegistryEndpoint.parse(url) for url in registry_cfg.api_urls]
        method = credential_method(registry_cfg, endpoints)
        if method is None:
            raise ConfigurationError(
                "No Sensu API access token, API key, or username/password provided"
            )

        logger.info(
            "Configuration valid: %d filters, %s, %d Sensu API endpoint(s), auth=%s",
            len(self._filters),
            ",".join(self._criteria.regions) if self._criteria.regions else "all regions",
            len(endpoints), method,
        )
        return self._filters

    # ── Run ─────────────────────────────────────────────────────────

    def run(self) -> PassSummary:
        """Execute one pass and return its summary.

        ConfigurationError, RegistryAuthError and RegistryNotFoundError propagate;
        region and per-instance failures are recorded in the summary.
        """
        start = time.monotonic()
        self.validate()

        source = self._source if self._source is not None else self._build_source()
        registry = self._registry if self._registry is not None else RegistryClient(self._config.registry)

        self.state = PassState.DISCOVERING
        summary = PassSummary()
        try:
            self._discover(self._criteria, source, registry, summary)
        finally:
            summary.cancelled = self._cancelled.is_set()
            summary.elapsed_seconds = round(time.monotonic() - start, 2)

        self.state = PassState.REPORTING
        self._report(summary)
        self.state = PassState.DONE
        return summary

    def cancel(self) -> None:
        """Stop starting new region/instance work. Completed upserts are kept."""
        if not self._cancelled.is_set():
            logger.info("Cancellation requested, finishing in-flight work")
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def _build_source(self) -> InstanceSource:
        from .discovery.aws_client import EC2Client  # lazy import keeps boto3 out of tests that inject a source
        return EC2Client(self._config.ec2)

    # ── Discovering ─────────────────────────────────────────────────

    def _discover(
        self, criteria: Criteria, source: InstanceSource, registry: RegistryClient, summary: PassSummary,
    ) -> None:
        try:
            regions = RegionEnumerator(source).regions(criteria)
        except DiscoveryError as exc:
            logger.error("Region enumeration failed: %s", exc)
            summary.record_region_failure(ALL_REGIONS, str(exc))
            return

        max_workers = min(self._config.workers.max_regions, len(regions))
        if max_workers <= 1:
            for region in regions:
                if self._cancelled.is_set():
                    break
                self._process_region(region, source, registry, summary)
            return

        with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="region") as pool:
            futures = [
                pool.submit(self._process_region, region, source, registry, summary)
                for region in regions
            ]
            done, not_done = wait(futures, return_when=FIRST_EXCEPTION)
            for future in done:
                if future.exception() is not None:
                    # Remaining upserts would fail identically; stop scheduling work.
                    self._cancelled.set()
                    for pending in not_done:
                        pending.cancel()
                    raise future.exception()

    def _process_region(
        self, region: str, source: InstanceSource, registry: RegistryClient, summary: PassSummary,
    ) -> None:
        if self._cancelled.is_set():
            return

        namespace = self._config.registry.namespace
        count = 0
        try:
            for instance in source.iter_instances(region, self._filters):
                if self._cancelled.is_set():
                    break
                entity = entity_from_instance(instance, namespace)
                summary.record(registry.upsert_entity(entity))
                count += 1
        except DiscoveryError as exc:
            logger.error(
                "Discovery failed in region %s after %d instances: %s", region, count, exc,
                extra={"region": region},
            )
            summary.record_region_failure(region, str(exc))
            return

        logger.info(
            "Region %s: %d instances processed", region, count,
            extra={"region": region, "total_instances": count},
        )
        summary.record_region_done(region)

    # ── Reporting ───────────────────────────────────────────────────

    def _report(self, summary: PassSummary) -> None:
        extra = {
            "created_count": summary.created,
            "already_exists_count": summary.already_exists,
            "failed_count": summary.failed,
            "regions_failed": len(summary.region_failures),
            "elapsed_seconds": summary.elapsed_seconds,
            "status": summary.status,
        }
        for region, reason in sorted(summary.region_failures.items()):
            logger.warning("Region %s skipped: %s", region, reason, extra={"region": region})

        log = logger.error if summary.registry_unreachable else logger.info
        log(
            "Pass complete (%s): %d created, %d already existed, %d failed, %d/%d regions ok",
            summary.status, summary.created, summary.already_exists, summary.failed,
            len(summary.regions_processed),
            len(summary.regions_processed) + len(summary.region_failures),
            extra=extra,
        )

    # ── Signals ─────────────────────────────────────────────────────

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    def _handle_shutdown(self, signum: int, frame: FrameType | None) -> None:
        sig_name = signal.Signals(signum).name
        logger.info("Received %s, cancelling pass", sig_name)
        self.cancel()
