"""Maturity scoring: samples → maturity index → status suggestion and alert.

Pure functions, no I/O.  The index is the rounded sum of three capped
components:

    time   (max 30)  days since pinning / target maturation days
    size   (max 40)  average cap diameter / target diameter
    flat   (max 20)  bucketed share of flat caps: <20% → 0, 20–60% → 10, >60% → 20

The caps sum to 90, so 90 is the highest attainable index.
"""

import math
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from mycotrack.models.statuses import (
    AlertChannel, AlertLevel, AlertRecipient, CapShape, MaturityStatus,
)
from mycotrack.utils.timeutil import as_utc, utcnow

TIME_WEIGHT = 30
SIZE_WEIGHT = 40
FLAT_WEIGHT = 20

DEFAULT_TARGET_DIAMETER_CM = 8.0
DEFAULT_MATURATION_DAYS = 5

READY_THRESHOLD = 81
APPROACHING_THRESHOLD = 61

# Mode tie-break, most mature first
SHAPE_PRIORITY = (CapShape.UPTURNED, CapShape.FLAT, CapShape.CONVEX)


@dataclass(frozen=True)
class Sample:
    diameter: float            # cm
    shape: CapShape
    block_id: str | None = None


@dataclass(frozen=True)
class SampleAggregate:
    avg_diameter: float
    dominant_shape: CapShape
    flat_percentage: float
    sample_size: int


@dataclass(frozen=True)
class MaturityBaseline:
    target_diameter_cm: float = DEFAULT_TARGET_DIAMETER_CM
    target_maturation_days: float = DEFAULT_MATURATION_DAYS


@dataclass(frozen=True)
class MaturityScore:
    index: int
    time_score: float
    size_score: float
    flat_score: int
    days_since_pinning: int


@dataclass(frozen=True)
class HarvestAlert:
    level: AlertLevel
    recipient: AlertRecipient
    channel: AlertChannel
    message: str


def round_half_up(value: float, ndigits: int = 0) -> float:
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


def aggregate_samples(samples: Iterable[Sample]) -> SampleAggregate:
    samples = list(samples)
    if not samples:
        return SampleAggregate(0.0, CapShape.CONVEX, 0.0, 0)

    n = len(samples)
    avg = round_half_up(sum(s.diameter for s in samples) / n, 2)

    counts = Counter(s.shape for s in samples)
    top = max(counts.values())
    dominant = next(shape for shape in SHAPE_PRIORITY if counts.get(shape, 0) == top)

    flat_pct = 100 * counts.get(CapShape.FLAT, 0) / n
    return SampleAggregate(avg, dominant, flat_pct, n)


def days_since(pinning_date: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed, rounded up; never negative."""
    now = as_utc(now) if now is not None else utcnow()
    elapsed = (now - as_utc(pinning_date)).total_seconds() / 86400
    return max(0, math.ceil(elapsed))


def flat_ratio_score(flat_percentage: float) -> int:
    ratio = flat_percentage / 100
    if ratio < 0.2:
        return 0
    if ratio <= 0.6:
        return 10
    return FLAT_WEIGHT


def calculate_maturity_index(
    avg_diameter: float,
    flat_percentage: float,
    pinning_date: datetime | None,
    baseline: MaturityBaseline | None = None,
    now: datetime | None = None,
) -> MaturityScore:
    baseline = baseline or MaturityBaseline()
    target_days = baseline.target_maturation_days
    if not target_days or target_days <= 0:
        target_days = DEFAULT_MATURATION_DAYS
    target_diameter = baseline.target_diameter_cm
    if not target_diameter or target_diameter <= 0:
        target_diameter = DEFAULT_TARGET_DIAMETER_CM

    days = 0
    time_score = 0.0
    if pinning_date is not None:
        days = days_since(pinning_date, now)
        time_score = min(TIME_WEIGHT, TIME_WEIGHT * days / target_days)

    size_score = min(SIZE_WEIGHT, SIZE_WEIGHT * avg_diameter / target_diameter)
    flat_score = flat_ratio_score(flat_percentage)

    index = int(round_half_up(time_score + size_score + flat_score))
    return MaturityScore(index, time_score, size_score, flat_score, days)


def evaluate_batch_status(
    maturity_index: int, flat_percentage: float, has_pinning_started: bool
) -> MaturityStatus:
    # flat_percentage is already folded into the index
    if not has_pinning_started:
        return MaturityStatus.GROWING
    if maturity_index >= READY_THRESHOLD:
        return MaturityStatus.READY_TO_HARVEST
    if maturity_index >= APPROACHING_THRESHOLD:
        return MaturityStatus.APPROACHING_MATURITY
    return MaturityStatus.GROWING


def evaluate_harvest_status(
    maturity_index: int, flat_percentage: float, batch_id: str
) -> HarvestAlert | None:
    if maturity_index >= READY_THRESHOLD:
        return HarvestAlert(
            level=AlertLevel.WARNING,
            recipient=AlertRecipient.WORKERS,
            channel=AlertChannel.PUSH,
            message=f"TASK: Harvest Batch {batch_id} NOW. Maturity Index: {maturity_index}%",
        )
    if maturity_index >= APPROACHING_THRESHOLD:
        return HarvestAlert(
            level=AlertLevel.INFO,
            recipient=AlertRecipient.VILLAGE_C,
            channel=AlertChannel.EMAIL,
            message=f"Heads Up: Batch {batch_id} approaching maturity ({maturity_index}%).",
        )
    return None
