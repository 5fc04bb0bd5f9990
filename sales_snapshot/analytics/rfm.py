"""
RFM Analysis

Recency and frequency are scored by rank position: customers are stably
sorted and cut into four equal-size quartiles, so ties are broken by
first-seen order. Monetary is scored by value against the 25th/50th/75th
percentile of total revenue. Score 4 is the best quartile on every axis.
"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .schemas import CustomerDetail, RFMMatrixCell, RFMSegment

SCORES = (1, 2, 3, 4)
MONETARY_QUANTILES = (0.25, 0.5, 0.75)

SEGMENT_DESCRIPTIONS = {
    "Champions": "Best customers: recent, frequent, high spend.",
    "Potential Loyalists": "High value, recent, low frequency.",
    "At Risk": "Previously valuable, not recent.",
    "Lost": "Low value, inactive.",
    "Hibernating": "Inactive customers.",
}


@dataclass(frozen=True)
class RFMScore:
    member_id: str
    r_score: int
    f_score: int
    m_score: int
    total_revenue: float
    transaction_count: int

    @property
    def segment(self) -> str:
        return segment_for(self.r_score, self.f_score, self.m_score)


def segment_for(r: int, f: int, m: int) -> str:
    """Fixed decision table; anything unmatched is Hibernating"""
    if r >= 3 and f >= 3 and m >= 3:
        return "Champions"
    if r >= 3 and f <= 2 and m >= 3:
        return "Potential Loyalists"
    if r <= 2 and f >= 3 and m >= 3:
        return "At Risk"
    if r <= 2 and f <= 2 and m <= 2:
        return "Lost"
    return "Hibernating"


def round_half_up(value: float, digits: int = 0) -> float:
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def monetary_thresholds(revenues: Sequence[float]) -> Tuple[float, ...]:
    """Value at ``sorted[min(floor(n*q), n-1)]`` for each quantile"""
    ordered = sorted(revenues)
    n = len(ordered)
    if n == 0:
        return tuple(0.0 for _ in MONETARY_QUANTILES)
    return tuple(ordered[min(math.floor(n * q), n - 1)] for q in MONETARY_QUANTILES)


def _position_score(position: int, quartile_size: int) -> int:
    for score, bound in zip((4, 3, 2), (1, 2, 3)):
        if position < quartile_size * bound:
            return score
    return 1


def score_customers(customers: Sequence[CustomerDetail]) -> List[RFMScore]:
    """R/F/M scores per customer, in input order"""
    if not customers:
        return []

    m25, m50, m75 = monetary_thresholds([c.total_revenue for c in customers])
    quartile_size = math.ceil(len(customers) / 4)

    by_recency = sorted(customers, key=lambda c: c.days_since_last_purchase)
    by_frequency = sorted(customers, key=lambda c: c.transaction_count, reverse=True)
    recency_pos = {c.member_id: i for i, c in enumerate(by_recency)}
    frequency_pos = {c.member_id: i for i, c in enumerate(by_frequency)}

    scores = []
    for c in customers:
        if c.total_revenue >= m75:
            m = 4
        elif c.total_revenue >= m50:
            m = 3
        elif c.total_revenue >= m25:
            m = 2
        else:
            m = 1
        scores.append(
            RFMScore(
                member_id=c.member_id,
                r_score=_position_score(recency_pos[c.member_id], quartile_size),
                f_score=_position_score(frequency_pos[c.member_id], quartile_size),
                m_score=m,
                total_revenue=c.total_revenue,
                transaction_count=c.transaction_count,
            )
        )
    return scores


@dataclass
class _SegmentAccumulator:
    count: int = 0
    revenue: float = 0.0
    r_mean: float = 0.0
    f_mean: float = 0.0
    m_mean: float = 0.0

    def add(self, score: RFMScore) -> None:
        self.count += 1
        self.revenue += score.total_revenue
        # running mean: new = (old * (n - 1) + x) / n
        n = self.count
        self.r_mean = (self.r_mean * (n - 1) + score.r_score) / n
        self.f_mean = (self.f_mean * (n - 1) + score.f_score) / n
        self.m_mean = (self.m_mean * (n - 1) + score.m_score) / n


def get_rfm_segments(customers: Sequence[CustomerDetail]) -> List[RFMSegment]:
    """Named segments sorted by revenue, mean scores rounded half-up to one decimal"""
    scores = score_customers(customers)
    if not scores:
        return []

    accumulators: Dict[str, _SegmentAccumulator] = {}
    for score in scores:
        accumulators.setdefault(score.segment, _SegmentAccumulator()).add(score)

    total = len(scores)
    segments = [
        RFMSegment(
            segment=name,
            description=SEGMENT_DESCRIPTIONS[name],
            count=acc.count,
            total_revenue=acc.revenue,
            average_revenue=acc.revenue / acc.count,
            percentage=acc.count / total * 100,
            r_score=round_half_up(acc.r_mean, 1),
            f_score=round_half_up(acc.f_mean, 1),
            m_score=round_half_up(acc.m_mean, 1),
        )
        for name, acc in accumulators.items()
    ]
    return sorted(segments, key=lambda s: s.total_revenue, reverse=True)


def get_rfm_matrix(
    customers: Sequence[CustomerDetail],
    segments: Optional[Sequence[RFMSegment]] = None,
) -> List[RFMMatrixCell]:
    """
    The 4x4 (recency, frequency) grid in r-major order.

    A cell lists the named segments whose rounded mean R/F land on it, but
    only once at least one customer falls in the cell.
    """
    scores = score_customers(customers)
    if not scores:
        return []
    if segments is None:
        segments = get_rfm_segments(customers)

    cells: Dict[Tuple[int, int], Dict[str, float]] = {
        (r, f): {"count": 0, "revenue": 0.0, "transactions": 0, "m_sum": 0}
        for r in SCORES
        for f in SCORES
    }
    for score in scores:
        cell = cells[(score.r_score, score.f_score)]
        cell["count"] += 1
        cell["revenue"] += score.total_revenue
        cell["transactions"] += score.transaction_count
        cell["m_sum"] += score.m_score

    total = len(scores)
    matrix = []
    for r in SCORES:
        for f in SCORES:
            cell = cells[(r, f)]
            count = cell["count"]
            matched = []
            if count > 0:
                matched = [
                    s for s in segments
                    if round_half_up(s.r_score) == r and round_half_up(s.f_score) == f
                ]
            matrix.append(
                RFMMatrixCell(
                    r_score=r,
                    f_score=f,
                    count=count,
                    total_revenue=cell["revenue"],
                    average_revenue=cell["revenue"] / cell["transactions"] if cell["transactions"] > 0 else 0,
                    average_m_score=cell["m_sum"] / count if count > 0 else 0,
                    percentage=count / total * 100,
                    segments=matched,
                )
            )
    return matrix
