"""
Test Lifecycle Management
=========================

State machine for multi-variant tests and the orchestration of metric
aggregation, significance analysis, winner selection and reporting.

States:
    draft ──start──▶ running ──pause──▶ paused
                       ▲  │               │
                       └──┼────resume─────┘
                          ▼
                      completed      (complete, or early stop on a metric update)
    draft / running / paused ──cancel──▶ cancelled

Completed and cancelled are terminal.

Each test id has its own lock, held from load to update, so concurrent
metric feeds, automatic completion and a manual ``complete_test`` on the
same test are applied one at a time. Different tests never contend.

Example Usage:
--------------
>>> from variant_testing import ABTestManager, InMemoryRepository
>>> from variant_testing.core.models import ABTestConfig, VariantSpec, MetricsDelta
>>>
>>> manager = ABTestManager(InMemoryRepository())
>>> test = manager.create_test(
...     ABTestConfig(name="CTA colour", sample_size=2000),
...     [VariantSpec("Blue", is_control=True), VariantSpec("Orange")],
... )
>>> manager.start_test(test.id)
>>> manager.record_metrics(test.id, test.variants[1].id,
...                        MetricsDelta(impressions=1000, clicks=80, conversions=12))
>>> result = manager.analyze(test.id)
"""

import logging
import threading
import uuid
import weakref
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator, List, Optional, Sequence

from variant_testing.config import EngineSettings, get_settings
from variant_testing.core import frequentist, metrics as metrics_ops, power
from variant_testing.core.models import (
    ABTest,
    ABTestConfig,
    ABTestResults,
    ABTestStatus,
    MetricsDelta,
    StatisticalRecord,
    StatisticalResult,
    Variant,
    VariantComparison,
    VariantSpec,
    VariantStatus,
)
from variant_testing.decision import report, winner
from variant_testing.exceptions import (
    InvalidStateError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from variant_testing.repository import Repository

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(test: ABTest, now: datetime) -> bool:
    """
    Whether a live test has run past ``max_duration_days``.

    Pure predicate for an external scheduler; the engine never ends a test
    on its own because of elapsed time.
    """
    if test.status not in (ABTestStatus.RUNNING, ABTestStatus.PAUSED):
        return False
    if test.start_date is None:
        return False
    return now >= test.start_date + timedelta(days=test.config.max_duration_days)


def validate_configuration(
    config: ABTestConfig,
    variants: Sequence[VariantSpec],
    settings: EngineSettings,
) -> List[str]:
    """Every problem with a proposed test (empty when valid)."""
    errors = []

    if len(variants) < 2:
        errors.append("A/B test requires at least 2 variants")

    controls = sum(1 for v in variants if v.is_control)
    if controls != 1:
        errors.append(f"A/B test requires exactly one control variant, got {controls}")

    if config.sample_size < settings.min_sample_size:
        errors.append(f"Sample size too small. Minimum: {settings.min_sample_size}")
    if config.sample_size > settings.max_sample_size:
        errors.append(f"Sample size too large. Maximum: {settings.max_sample_size}")

    low, high = settings.min_significance_threshold, settings.max_significance_threshold
    if not (low <= config.significance_threshold <= high):
        errors.append(f"Significance threshold must be between {low:g}% and {high:g}%")

    if config.minimum_detectable_effect <= 0:
        errors.append("Minimum detectable effect must be positive")
    if config.max_duration_days <= 0:
        errors.append("Maximum duration must be at least one day")

    for spec in variants:
        if spec.traffic_percentage < 0:
            errors.append(f"Variant '{spec.name}' has negative traffic percentage")

    allocation = sum(spec.traffic_percentage for spec in variants)
    if variants and abs(allocation - 100.0) >= settings.traffic_tolerance:
        errors.append(f"Traffic percentages must sum to 100%, got {allocation:g}%")

    return errors


class ABTestManager:
    """
    Owns the test state machine.

    Parameters
    ----------
    repository : Repository
        Storage for tests
    settings : EngineSettings, optional
        Policy constants; defaults to the process-wide settings
    clock : callable, optional
        Returns the current aware datetime; injectable for tests
    """

    def __init__(
        self,
        repository: Repository,
        settings: Optional[EngineSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.repository = repository
        self.settings = settings or get_settings()
        self.clock = clock or _utcnow
        self._locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._registry_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Locking and persistence helpers
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self, test_id: str) -> Iterator[None]:
        # Entries live only while some caller holds the lock object
        with self._registry_lock:
            lock = self._locks.get(test_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[test_id] = lock
        with lock:
            yield

    def _load(self, test_id: str) -> ABTest:
        test = self.repository.load(test_id)
        if test is None:
            raise NotFoundError("Test", test_id)
        return test

    def _store(self, test: ABTest, new: bool = False) -> None:
        try:
            if new:
                self.repository.save(test)
            else:
                self.repository.update(test)
        except PersistenceError:
            logger.error("Failed to persist test %s", test.id)
            raise
        except Exception as exc:
            logger.error("Failed to persist test %s: %s", test.id, exc)
            raise PersistenceError(f"Failed to persist test {test.id}: {exc}", test.id) from exc

    @staticmethod
    def _require(test: ABTest, operation: str, *allowed: ABTestStatus) -> None:
        if test.status not in allowed:
            raise InvalidStateError(test.id, test.status.value, operation)

    # ------------------------------------------------------------------
    # Analysis (pure with respect to storage)
    # ------------------------------------------------------------------

    def _analyze(self, test: ABTest) -> StatisticalResult:
        config = test.config
        comparisons = frequentist.analyze_variants(
            test.variants,
            confidence=config.significance_threshold,
            cap=self.settings.confidence_cap,
        )
        decision = winner.decide(
            comparisons,
            config.significance_threshold,
            config.auto_winner_declaration,
            early_stopping_threshold=self.settings.early_stopping_threshold,
            minimal_improvement=self.settings.minimal_improvement,
            strong_improvement=self.settings.strong_improvement,
        )

        # Headline statistics: the winner, else the strongest candidate
        candidates = [c for c in comparisons if not c.is_control]
        headline = decision.winner or max(candidates, key=lambda c: c.significance)
        control = test.control
        candidate = test.get_variant(headline.variant_id)

        return StatisticalResult(
            test_id=test.id,
            comparisons=report.mark_winner(comparisons, decision.winner_variant_id),
            winner_variant_id=decision.winner_variant_id,
            significance=decision.significance,
            confidence_level=min(self.settings.confidence_cap, decision.significance),
            p_value=headline.p_value,
            z_score=headline.z_score,
            effect_size=headline.effect_size,
            improvement=decision.improvement,
            power=power.achieved_power(
                control.metrics.conversions, control.metrics.impressions,
                candidate.metrics.conversions, candidate.metrics.impressions,
                config.significance_threshold,
            ),
            sample_size_reached=power.sample_size_reached(
                test.variants, test.statistical.minimum_sample_size
            ),
            recommendation=decision.recommendation,
            early_stop=decision.early_stop,
            sample_size_analysis=power.sample_progress(
                test.variants, test.statistical.minimum_sample_size
            ),
            days_to_significance=self._days_to_significance(test, candidates),
        )

    def _days_to_significance(self, test: ABTest,
                              candidates: List[VariantComparison]) -> Optional[float]:
        """Projected days until the best-lifting candidate is detectable, at the current pace."""
        if test.start_date is None:
            return None
        lifting = [c for c in candidates if c.improvement_over_control > 0]
        if not lifting:
            return None
        best = max(lifting, key=lambda c: c.improvement_over_control)

        control = test.control.metrics
        treatment = test.get_variant(best.variant_id).metrics
        elapsed = (self.clock() - test.start_date).total_seconds() / 86400
        return power.days_to_significance(
            control.conversions, control.impressions,
            treatment.conversions, treatment.impressions,
            elapsed_days=elapsed,
            significance_percent=test.config.significance_threshold,
        )

    def _apply_analysis(self, test: ABTest, analysis: StatisticalResult) -> None:
        test.current_significance = frequentist.max_significance(analysis.comparisons)
        test.confidence_level = min(self.settings.confidence_cap, test.current_significance)
        test.statistical = replace(
            test.statistical,
            p_value=analysis.p_value,
            z_score=analysis.z_score,
            effect_size=analysis.effect_size,
            power=analysis.power,
            sample_size_reached=analysis.sample_size_reached,
            sample_progress=analysis.sample_size_analysis.get('progress', 0.0),
        )

    def _finalize(self, test: ABTest, analysis: StatisticalResult, now: datetime) -> None:
        test.status = ABTestStatus.COMPLETED
        test.end_date = now
        test.winner_declared_at = now
        test.winner_variant_id = analysis.winner_variant_id
        test.results = report.build_results(test, analysis, self.settings)
        test.insights = test.results.insights

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def create_test(self, config: ABTestConfig, variants: Sequence[VariantSpec]) -> ABTest:
        """
        Validate and store a new test in draft status.

        Raises
        ------
        ValidationError
            Listing every violation; nothing is stored
        """
        errors = validate_configuration(config, variants, self.settings)
        if errors:
            raise ValidationError(errors)

        now = self.clock()
        test_id = f"ab-test-{uuid.uuid4().hex[:12]}"
        minimum = power.minimum_sample_size(
            config.minimum_detectable_effect,
            config.significance_threshold,
            p_baseline=self.settings.baseline_conversion_rate,
            z_beta=self.settings.z_beta,
        )

        test = ABTest(
            id=test_id,
            config=config,
            variants=[
                Variant(
                    id=f"variant-{test_id}-{index}",
                    name=spec.name,
                    is_control=spec.is_control,
                    traffic_percentage=spec.traffic_percentage,
                    description=spec.description,
                    content=dict(spec.content),
                    platforms=tuple(spec.platforms),
                    accounts=tuple(spec.accounts),
                    metrics=metrics_ops.initial_metrics(now),
                )
                for index, spec in enumerate(variants)
            ],
            statistical=StatisticalRecord(minimum_sample_size=minimum),
            created_at=now,
            updated_at=now,
        )

        self._store(test, new=True)
        logger.info("Created A/B test %s (%s) with %d variants, minimum sample %d",
                    test.id, config.name, len(test.variants), minimum)
        return test

    def get_test(self, test_id: str) -> ABTest:
        return self._load(test_id)

    def start_test(self, test_id: str) -> ABTest:
        with self._locked(test_id):
            test = self._load(test_id)
            self._require(test, "start", ABTestStatus.DRAFT)

            now = self.clock()
            test.status = ABTestStatus.RUNNING
            test.start_date = now
            test.updated_at = now
            self._store(test)

        logger.info("Started A/B test %s on platforms %s", test_id, list(test.config.platforms))
        return test

    def pause_test(self, test_id: str) -> ABTest:
        with self._locked(test_id):
            test = self._load(test_id)
            self._require(test, "pause", ABTestStatus.RUNNING)
            test.status = ABTestStatus.PAUSED
            test.updated_at = self.clock()
            self._store(test)

        logger.info("Paused A/B test %s", test_id)
        return test

    def resume_test(self, test_id: str) -> ABTest:
        with self._locked(test_id):
            test = self._load(test_id)
            self._require(test, "resume", ABTestStatus.PAUSED)
            test.status = ABTestStatus.RUNNING
            test.updated_at = self.clock()
            self._store(test)

        logger.info("Resumed A/B test %s", test_id)
        return test

    def cancel_test(self, test_id: str) -> ABTest:
        with self._locked(test_id):
            test = self._load(test_id)
            self._require(test, "cancel",
                          ABTestStatus.DRAFT, ABTestStatus.RUNNING, ABTestStatus.PAUSED)
            now = self.clock()
            test.status = ABTestStatus.CANCELLED
            test.end_date = now
            test.updated_at = now
            self._store(test)

        logger.info("Cancelled A/B test %s", test_id)
        return test

    def set_variant_status(self, test_id: str, variant_id: str,
                           status: VariantStatus) -> ABTest:
        """Pause or stop a single variant without ending the test."""
        with self._locked(test_id):
            test = self._load(test_id)
            variant = test.get_variant(variant_id)
            if variant is None:
                raise NotFoundError("Variant", variant_id)
            self._require(test, "change variant status of",
                          ABTestStatus.DRAFT, ABTestStatus.RUNNING, ABTestStatus.PAUSED)
            variant.status = VariantStatus(status)
            test.updated_at = self.clock()
            self._store(test)

        logger.info("Variant %s of test %s is now %s", variant_id, test_id, variant.status.value)
        return test

    def record_metrics(
        self,
        test_id: str,
        variant_id: str,
        delta: MetricsDelta,
        platform: Optional[str] = None,
    ) -> ABTest:
        """
        Add a metric delta to a variant and re-evaluate the test.

        When automatic winner declaration is on and significance reaches the
        early stopping threshold, the test is completed within this call.

        Raises
        ------
        NotFoundError
            Unknown test or variant
        InvalidStateError
            Test is not running
        ValidationError
            Negative delta fields
        """
        errors = metrics_ops.validate_delta(delta)
        if errors:
            raise ValidationError(errors)

        with self._locked(test_id):
            test = self._load(test_id)
            variant = test.get_variant(variant_id)
            if variant is None:
                raise NotFoundError("Variant", variant_id)
            self._require(test, "record metrics for", ABTestStatus.RUNNING)

            now = self.clock()
            variant.metrics = metrics_ops.apply(variant.metrics, delta, now)
            if platform:
                current = variant.platform_metrics.get(platform) or metrics_ops.initial_metrics(now)
                variant.platform_metrics[platform] = metrics_ops.apply(current, delta, now)

            analysis = self._analyze(test)
            self._apply_analysis(test, analysis)
            if analysis.early_stop:
                self._finalize(test, analysis, now)
            test.updated_at = now
            self._store(test)

        if test.status is ABTestStatus.COMPLETED:
            logger.info("Auto-completed A/B test %s at %.1f%% significance, winner %s",
                        test_id, test.current_significance, test.winner_variant_id)
        return test

    def analyze(self, test_id: str) -> StatisticalResult:
        """Fresh analysis of the stored metrics. Does not modify the test."""
        return self._analyze(self._load(test_id))

    def complete_test(self, test_id: str) -> ABTest:
        """
        Run the final analysis and close the test.

        Completing an already completed test returns it unchanged.
        """
        with self._locked(test_id):
            test = self._load(test_id)
            if test.status is ABTestStatus.COMPLETED:
                return test
            self._require(test, "complete", ABTestStatus.RUNNING, ABTestStatus.PAUSED)

            now = self.clock()
            analysis = self._analyze(test)
            self._apply_analysis(test, analysis)
            self._finalize(test, analysis, now)
            test.updated_at = now
            self._store(test)

        logger.info("Completed A/B test %s, winner %s", test_id, test.winner_variant_id)
        return test

    def get_results(self, test_id: str) -> ABTestResults:
        """Stored report of a completed test, or a live report otherwise."""
        test = self._load(test_id)
        if test.results is not None:
            return test.results
        return report.build_results(test, self._analyze(test), self.settings)
