"""
Claim status workflow - transition rules and update application.

Validates an update request against the claim it targets and
produces the updated claim. Nothing is applied unless the whole
request is valid.
"""

import logging

from claims_review.config import ALLOWED_TRANSITIONS
from claims_review.estimate import determine_estimate_source, finalize_assessment
from claims_review.models import (
    Claim,
    ClaimStatus,
    ClaimUpdate,
    EstimateSource,
    InvalidUpdateError,
)

logger = logging.getLogger(__name__)

# Totals are recomputed whenever a claim leaves the review queue
SUBMITTED_STATUSES = (ClaimStatus.AWAITING_APPROVAL, ClaimStatus.ESCALATED)


def parse_status(value: ClaimStatus | str) -> ClaimStatus:
    """Accepts both ClaimStatus and plain string."""
    try:
        return ClaimStatus(value)
    except ValueError:
        raise InvalidUpdateError(
            f"Invalid status: {value}. Must be one of {[s.value for s in ClaimStatus]}"
        )


def parse_estimate_source(value: EstimateSource | str) -> EstimateSource:
    try:
        return EstimateSource(value)
    except ValueError:
        raise InvalidUpdateError(
            f"Invalid estimate source: {value}. Must be one of {[s.value for s in EstimateSource]}"
        )


def can_transition(current: ClaimStatus, target: ClaimStatus) -> bool:
    """Same-status updates are always allowed; otherwise the allow-list decides."""
    if current == target:
        return True
    return target.value in ALLOWED_TRANSITIONS.get(current.value, set())


def is_revert(current: ClaimStatus, target: ClaimStatus) -> bool:
    """Sending a submitted or escalated claim back to Pending Review."""
    return target == ClaimStatus.PENDING_REVIEW and current in SUBMITTED_STATUSES


def revert_claim(claim: Claim) -> Claim:
    """
    Restores the original AI assessment and drops all agent edits.

    Without a baseline the current assessment is kept; only status,
    estimate source, and agent image are reset.
    """
    assessment = claim.original_ai_assessment or claim.ai_assessment
    reverted = claim.model_copy(deep=True)
    reverted.status = ClaimStatus.PENDING_REVIEW
    reverted.ai_assessment = assessment.model_copy(deep=True)
    reverted.estimate_source = EstimateSource.AI_ONLY
    reverted.agent_annotated_image_url = None
    return reverted


def apply_update(claim: Claim, update: ClaimUpdate) -> Claim:
    """
    Returns a new claim with the update applied.

    Order:
    1. Validate status, estimate source, transition, and baseline
    2. Revert, when the transition is a revert
    3. Otherwise apply assessment, baseline, agent image, and status,
       recomputing the total when the claim is submitted or escalated
    4. Re-derive the estimate source from the resulting assessment

    The total-cost invariant is enforced only on submission. An
    assessment sent without a submitting status is stored as sent, so
    a pending claim may carry a total that differs from its damage sum.

    Raises:
        InvalidUpdateError: If any part of the request is rejected.
    """
    target = parse_status(update.status) if update.status is not None else None
    requested_source = (
        parse_estimate_source(update.estimate_source) if update.estimate_source is not None else None
    )

    if target is not None and not can_transition(claim.status, target):
        raise InvalidUpdateError(f"Cannot move claim {claim.id} from '{claim.status.value}' to '{target.value}'")

    if (
        update.original_ai_assessment is not None
        and claim.original_ai_assessment is not None
        and update.original_ai_assessment != claim.original_ai_assessment
    ):
        raise InvalidUpdateError(f"Original AI assessment of claim {claim.id} cannot be changed")

    if target is not None and is_revert(claim.status, target):
        logger.info("Reverting claim %s to %s", claim.id, target.value)
        return revert_claim(claim)

    updated = claim.model_copy(deep=True)

    if update.ai_assessment is not None:
        updated.ai_assessment = update.ai_assessment.model_copy(deep=True)

    if update.original_ai_assessment is not None and updated.original_ai_assessment is None:
        updated.original_ai_assessment = update.original_ai_assessment.model_copy(deep=True)

    if update.clears_agent_image:
        updated.agent_annotated_image_url = None
    elif update.agent_annotated_image_url is not None:
        updated.agent_annotated_image_url = update.agent_annotated_image_url

    if target is not None:
        updated.status = target
        if target in SUBMITTED_STATUSES:
            updated.ai_assessment = finalize_assessment(
                updated.ai_assessment, updated.policy_info.estimated_vehicle_value
            )

    updated.estimate_source = determine_estimate_source(updated.ai_assessment, updated.original_ai_assessment)

    if requested_source is not None and requested_source != updated.estimate_source:
        logger.warning(
            "Claim %s: client sent estimate source '%s', derived '%s'",
            claim.id,
            requested_source.value,
            updated.estimate_source.value,
        )

    return updated
