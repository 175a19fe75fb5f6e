"""
Data Model for Multi-Variant Tests
==================================

Containers for test configuration, variants, metric snapshots and analysis
results. Statistical functions live in ``frequentist`` and ``power``; this
module only holds state.

Example Usage:
--------------
>>> from variant_testing.core.models import ABTestConfig, VariantSpec
>>>
>>> config = ABTestConfig(
...     name="Spring headline",
...     platforms=("facebook", "linkedin"),
...     sample_size=5000,
...     significance_threshold=95,
...     minimum_detectable_effect=10,
... )
>>> variants = [
...     VariantSpec(name="Original", is_control=True, traffic_percentage=50),
...     VariantSpec(name="Question headline", traffic_percentage=50),
... ]
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class ABTestStatus(str, Enum):
    DRAFT = "draft"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class VariantStatus(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    STOPPED = "stopped"


class ABTestType(str, Enum):
    CONTENT = "content"
    SUBJECT_LINE = "subject_line"
    CREATIVE = "creative"
    AUDIENCE = "audience"
    TIMING = "timing"
    LANDING_PAGE = "landing_page"
    EMAIL = "email"
    SOCIAL = "social"


class TrafficSplit(str, Enum):
    EQUAL = "equal"
    WEIGHTED = "weighted"
    ADAPTIVE = "adaptive"


COUNTER_FIELDS = (
    'impressions', 'clicks', 'conversions', 'revenue', 'cost',
    'engagement', 'shares', 'comments', 'likes', 'reach',
)


@dataclass(frozen=True)
class ABTestConfig:
    """Immutable test configuration. Percentages are on a 0-100 scale."""
    name: str
    description: str = ""
    test_type: ABTestType = ABTestType.CONTENT
    platforms: Tuple[str, ...] = ()
    accounts: Tuple[str, ...] = ()
    hypothesis: str = ""
    success_metrics: Tuple[str, ...] = ("conversion_rate",)
    target_audience: str = "all"
    sample_size: int = 1000
    traffic_split: TrafficSplit = TrafficSplit.EQUAL
    significance_threshold: float = 95.0
    minimum_detectable_effect: float = 10.0
    max_duration_days: int = 30
    auto_winner_declaration: bool = True


@dataclass(frozen=True)
class VariantSpec:
    """Caller-supplied variant definition used at test creation."""
    name: str
    is_control: bool = False
    traffic_percentage: float = 50.0
    description: str = ""
    content: Dict[str, Any] = field(default_factory=dict)
    platforms: Tuple[str, ...] = ()
    accounts: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Metrics:
    """Running totals for one variant plus rates derived from them."""
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    cost: float = 0.0
    engagement: int = 0
    shares: int = 0
    comments: int = 0
    likes: int = 0
    reach: int = 0
    click_through_rate: float = 0.0
    conversion_rate: float = 0.0
    cost_per_conversion: float = 0.0
    return_on_ad_spend: float = 0.0
    engagement_rate: float = 0.0
    last_updated: Optional[datetime] = None


@dataclass(frozen=True)
class MetricsDelta:
    """Increment reported by a feed. Always added to the running totals."""
    impressions: int = 0
    clicks: int = 0
    conversions: int = 0
    revenue: float = 0.0
    cost: float = 0.0
    engagement: int = 0
    shares: int = 0
    comments: int = 0
    likes: int = 0
    reach: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MetricsDelta":
        unknown = set(data) - set(COUNTER_FIELDS)
        if unknown:
            raise ValueError(f"Unknown metric fields: {sorted(unknown)}")
        return cls(**data)


@dataclass
class Variant:
    id: str
    name: str
    is_control: bool
    traffic_percentage: float
    description: str = ""
    content: Dict[str, Any] = field(default_factory=dict)
    platforms: Tuple[str, ...] = ()
    accounts: Tuple[str, ...] = ()
    status: VariantStatus = VariantStatus.ACTIVE
    metrics: Metrics = field(default_factory=Metrics)
    platform_metrics: Dict[str, Metrics] = field(default_factory=dict)


@dataclass
class StatisticalRecord:
    """Latest statistics stored on the test."""
    minimum_sample_size: int
    p_value: float = 1.0
    z_score: float = 0.0
    effect_size: float = 0.0
    power: float = 0.0
    sample_size_reached: bool = False
    sample_progress: float = 0.0


@dataclass
class VariantComparison:
    variant_id: str
    variant_name: str
    is_control: bool
    metrics: Metrics
    conversion_rate: float
    improvement_over_control: float
    z_score: float
    p_value: float
    significance: float
    confidence: float
    effect_size: float
    ci_lower: float = 0.0
    ci_upper: float = 0.0
    is_winner: bool = False


@dataclass
class StatisticalResult:
    """Ephemeral analysis of all variants against the control."""
    test_id: str
    comparisons: List[VariantComparison]
    winner_variant_id: Optional[str]
    significance: float
    confidence_level: float
    p_value: float
    z_score: float
    effect_size: float
    improvement: float
    power: float
    sample_size_reached: bool
    recommendation: str
    early_stop: bool = False
    sample_size_analysis: Dict[str, float] = field(default_factory=dict)
    days_to_significance: Optional[float] = None


@dataclass
class Insight:
    type: str
    category: str
    message: str
    impact: str
    actionable: bool
    confidence: float
    recommendation: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class CostAnalysis:
    total_cost: float
    total_revenue: float
    cost_per_variant: float
    roi: float
    cost_efficiency: float


@dataclass
class ABTestResults:
    test_id: str
    winner_variant_id: Optional[str]
    confidence_level: float
    statistical_significance: float
    improvement_percentage: float
    p_value: float
    effect_size: float
    recommendation: str
    insights: List[Insight]
    performance_comparison: List[VariantComparison]
    cost_analysis: CostAnalysis
    platform_performance: List[Dict[str, Any]]
    audience_segments: List[Dict[str, Any]]
    quality_checks: Dict[str, Any] = field(default_factory=dict)
    sample_size_analysis: Dict[str, float] = field(default_factory=dict)
    days_to_significance: Optional[float] = None


@dataclass
class ABTest:
    id: str
    config: ABTestConfig
    variants: List[Variant]
    statistical: StatisticalRecord
    created_at: datetime
    updated_at: datetime
    status: ABTestStatus = ABTestStatus.DRAFT
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    current_significance: float = 0.0
    confidence_level: float = 0.0
    winner_variant_id: Optional[str] = None
    winner_declared_at: Optional[datetime] = None
    results: Optional[ABTestResults] = None
    insights: List[Insight] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def description(self) -> str:
        return self.config.description

    @property
    def control(self) -> Variant:
        for variant in self.variants:
            if variant.is_control:
                return variant
        raise ValueError(f"Test {self.id} has no control variant")

    def get_variant(self, variant_id: str) -> Optional[Variant]:
        for variant in self.variants:
            if variant.id == variant_id:
                return variant
        return None
