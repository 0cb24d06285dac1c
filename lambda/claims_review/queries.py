"""
Dashboard queries over the claim list.

Filtering, free-text search, sorting, and counters. All functions
take a list of claims and return a new list or a summary.
"""

from claims_review.config import LOW_CONFIDENCE_THRESHOLD, REVIEW_QUEUE_STATUSES
from claims_review.models import Claim, ClaimStats, ClaimStatus, EstimateSource

SORT_KEYS = {
    "id": lambda c: c.id,
    "policyholder": lambda c: c.policy_info.driver_name,
    "claimDate": lambda c: c.incident_details.date_time,
    "incidentType": lambda c: c.incident_details.type,
    "status": lambda c: c.status.value,
    "reviewedBy": lambda c: c.estimate_source.value,
    "confidence": lambda c: c.ai_assessment.confidence_score,
}


def is_low_confidence(claim: Claim) -> bool:
    return claim.ai_assessment.confidence_score < LOW_CONFIDENCE_THRESHOLD


def claim_stats(claims: list[Claim]) -> ClaimStats:
    """
    Counts per status, plus submitted or returned claims whose
    AI confidence is below the low-confidence threshold.
    """
    return ClaimStats(
        total=len(claims),
        pending=_count(claims, ClaimStatus.PENDING_REVIEW),
        pending_returned=_count(claims, ClaimStatus.RETURNED_FOR_UPDATE),
        sent_for_review=_count(claims, ClaimStatus.AWAITING_APPROVAL),
        escalated=_count(claims, ClaimStatus.ESCALATED),
        low_confidence=sum(
            1 for c in claims
            if c.status in (ClaimStatus.AWAITING_APPROVAL, ClaimStatus.RETURNED_FOR_UPDATE)
            and is_low_confidence(c)
        ),
    )


def review_queue(claims: list[Claim]) -> list[Claim]:
    """Claims still waiting on an agent."""
    return [c for c in claims if c.status.value in REVIEW_QUEUE_STATUSES]


def filter_claims(
    claims: list[Claim],
    status: ClaimStatus | None = None,
    estimate_source: EstimateSource | None = None,
    search: str | None = None,
) -> list[Claim]:
    out = claims
    if status is not None:
        out = [c for c in out if c.status == status]
    if search and search.strip():
        out = [c for c in out if matches_search(c, search)]
    if estimate_source is not None:
        out = [c for c in out if c.estimate_source == estimate_source]
    return out


def matches_search(claim: Claim, query: str) -> bool:
    """
    Case-insensitive substring match on claim id, policyholder,
    policy number, vehicle, incident type, status, and incident date.
    """
    q = query.strip().lower()
    if not q:
        return True

    policy = claim.policy_info
    vehicle = policy.vehicle_details
    year = str(vehicle.year) if vehicle.year else ""

    haystack = [
        claim.id,
        policy.driver_name,
        policy.policy_number,
        vehicle.make,
        vehicle.model,
        f"{year} {vehicle.make} {vehicle.model}",
        claim.incident_details.type,
        claim.status.value,
        claim.incident_details.date_time,
    ]
    return any(q in field.lower() for field in haystack)


def sort_claims(claims: list[Claim], key: str = "id", descending: bool = False) -> list[Claim]:
    """
    Raises:
        ValueError: If key is not a known sort column.
    """
    if key not in SORT_KEYS:
        raise ValueError(f"Unknown sort key: {key}. Must be one of {sorted(SORT_KEYS)}")
    return sorted(claims, key=SORT_KEYS[key], reverse=descending)


def _count(claims: list[Claim], status: ClaimStatus) -> int:
    return sum(1 for c in claims if c.status == status)
