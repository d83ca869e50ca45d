"""
Fixed business rules for the recommendation analyzers and pattern identifiers.

Every threshold, priority tier and confidence formula used by the analyzers
lives here so the analyzers only carry control flow. The values are policy,
not configuration: changing them changes the recommendations curators see
for the same data.
"""
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

PRIORITY_LOW = 1
PRIORITY_MEDIUM = 2
PRIORITY_HIGH = 3

# No analyzer ever reports more certainty than this
CONFIDENCE_CAP = 0.95


@dataclass(frozen=True)
class PriorityRule:
    """
    Maps a ratio/rate to a priority tier.

    Tiers are checked in order; the first one whose threshold the value
    exceeds wins. With inclusive=True a value equal to the threshold also
    qualifies.
    """
    tiers: Tuple[Tuple[float, int], ...] = ()
    default: int = PRIORITY_LOW
    inclusive: bool = False

    def priority_for(self, value: float) -> int:
        for threshold, priority in self.tiers:
            if value > threshold or (self.inclusive and value == threshold):
                return priority
        return self.default


@dataclass(frozen=True)
class ConfidenceRule:
    """min(cap, base + value / divisor) or min(cap, base + value * per_unit)."""
    base: float
    divisor: Optional[float] = None
    per_unit: float = 0.0
    cap: float = CONFIDENCE_CAP

    def score(self, value: float = 0.0) -> float:
        if self.divisor:
            raw = self.base + value / self.divisor
        else:
            raw = self.base + value * self.per_unit
        return max(0.0, min(self.cap, raw))


@dataclass(frozen=True)
class AnalyzerPolicy:
    priority: PriorityRule
    confidence: ConfidenceRule
    limits: Dict[str, float] = field(default_factory=dict)


GENRE_DEMAND = AnalyzerPolicy(
    priority=PriorityRule(tiers=((10, PRIORITY_HIGH), (5, PRIORITY_MEDIUM)), default=PRIORITY_LOW),
    confidence=ConfidenceRule(base=0.5, divisor=100),
    limits={
        "top_n": 5,
        "max_novels": 10,  # strictly fewer novels than this
    },
)

AUTHOR_ENGAGEMENT = AnalyzerPolicy(
    priority=PriorityRule(tiers=((4.0, PRIORITY_HIGH),), default=PRIORITY_MEDIUM, inclusive=True),
    confidence=ConfidenceRule(base=0.6, divisor=10),
    limits={
        "top_n": 3,
        "min_reads": 5,  # strictly more reads than this
        "min_rating": 3.5,
    },
)

LOW_QUALITY = AnalyzerPolicy(
    priority=PriorityRule(tiers=((50, PRIORITY_HIGH),), default=PRIORITY_MEDIUM),
    confidence=ConfidenceRule(base=0.85),
    limits={
        "rating_below": 3.5,
        "sample_size": 5,
    },
)

LENGTH_PREFERENCE = AnalyzerPolicy(
    priority=PriorityRule(default=PRIORITY_MEDIUM),
    confidence=ConfidenceRule(base=0.75),
)

GLOBAL_ABANDONMENT = AnalyzerPolicy(
    priority=PriorityRule(tiers=((50, PRIORITY_HIGH),), default=PRIORITY_MEDIUM),
    confidence=ConfidenceRule(base=0.90),
    limits={
        "threshold": 30,  # strictly above this rate
    },
)

TAG_DEMAND = AnalyzerPolicy(
    priority=PriorityRule(tiers=((5, PRIORITY_HIGH), (2, PRIORITY_MEDIUM)), default=PRIORITY_LOW),
    # 0.5 + 12 votes * 0.05 = 1.1 before the cap; the cap is intended
    confidence=ConfidenceRule(base=0.5, per_unit=0.05),
    limits={
        "top_n": 10,
        "min_votes": 5,
        "max_novels": 2,
    },
)

# Pattern identifiers report a fixed confidence per rule
CONTENT_PREFERENCE_CONFIDENCE = 0.85
COMPLETION_DISTRIBUTION_CONFIDENCE = 0.95
CONTENT_PREFERENCE_TOP_N = 5

# Chapter-count buckets used by the length analyzer: (upper bound inclusive, label)
LENGTH_BUCKETS = (
    (50, "Short (1-50)"),
    (100, "Medium (51-100)"),
    (200, "Long (101-200)"),
)
LENGTH_BUCKET_OVERFLOW = "Very long (200+)"
