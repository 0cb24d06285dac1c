"""
Estimate reconciliation - provenance label and total-cost rules.

Pure functions over AIAssessment. Nothing here mutates its input:
every edit returns a new assessment with the total-cost invariant
restored (sum of damages, or the total-loss value).
"""

from claims_review.models import AIAssessment, BoundingBox, Damage, EstimateSource, Severity


# --- Estimate Source ---

def damage_key(damage: Damage) -> str:
    """
    Identity of a damage across edits.

    Editing both type and location of one damage yields a new key, so
    that damage counts as agent-entered rather than edited.
    """
    return f"{damage.type}-{damage.location}"


def determine_estimate_source(
    current: AIAssessment,
    original: AIAssessment | None,
) -> EstimateSource:
    """
    Classifies the current assessment against the original AI output.

    1. No baseline → AI only
    2. No damage in common with the baseline (and at least one damage) → Claims agent only
    3. Damages or total cost differ from the baseline → Edited by claims agent
    4. Otherwise → AI only
    """
    if original is None:
        return EstimateSource.AI_ONLY

    original_keys = {damage_key(d) for d in original.damages}
    current_keys = {damage_key(d) for d in current.damages}

    if not original_keys & current_keys and current.damages:
        return EstimateSource.AGENT_ONLY

    damages_changed = _damage_values(original) != _damage_values(current)
    cost_changed = original.total_estimated_cost != current.total_estimated_cost

    if damages_changed or cost_changed:
        return EstimateSource.EDITED_BY_AGENT

    return EstimateSource.AI_ONLY


# --- Total Loss ---

def total_from_damages(damages: list[Damage]) -> float:
    return sum(d.estimated_cost for d in damages)


def total_loss_value(assessment: AIAssessment, vehicle_value: float | None) -> float:
    """Vehicle value, else the prior total-loss value, else the damage sum."""
    return vehicle_value or assessment.total_loss_value or total_from_damages(assessment.damages)


def toggle_total_loss(assessment: AIAssessment, vehicle_value: float | None) -> AIAssessment:
    """
    Flips the total-loss flag.

    On: total cost becomes the total-loss value, reason kept.
    Off: total cost goes back to the damage sum, value and reason cleared.
    """
    if not assessment.is_total_loss:
        value = total_loss_value(assessment, vehicle_value)
        return assessment.model_copy(
            deep=True,
            update={
                "is_total_loss": True,
                "total_loss_value": value,
                "total_estimated_cost": value,
            },
        )

    return assessment.model_copy(
        deep=True,
        update={
            "is_total_loss": False,
            "total_loss_value": None,
            "total_loss_reason": None,
            "total_estimated_cost": total_from_damages(assessment.damages),
        },
    )


def finalize_assessment(assessment: AIAssessment, vehicle_value: float | None) -> AIAssessment:
    """
    Recomputes the total before a claim is submitted or escalated.

    The total-loss flag is left as is; only the total (and the
    total-loss value, when set) are brought in line with it.
    """
    if assessment.is_total_loss:
        value = total_loss_value(assessment, vehicle_value)
        return assessment.model_copy(
            deep=True,
            update={"total_estimated_cost": value, "total_loss_value": value or None},
        )

    return assessment.model_copy(
        deep=True,
        update={"total_estimated_cost": total_from_damages(assessment.damages)},
    )


def displayed_total_cost(assessment: AIAssessment, vehicle_value: float | None) -> float:
    """Figure shown as the claim total on the review screen."""
    if assessment.is_total_loss:
        return assessment.total_loss_value or vehicle_value or assessment.total_estimated_cost or 0
    return assessment.total_estimated_cost or total_from_damages(assessment.damages)


# --- Damage Edits ---

def update_damage_cost(assessment: AIAssessment, index: int, cost: float) -> AIAssessment:
    """Sets one damage's cost (negative clamps to 0). Raises IndexError for a bad index."""
    damages = [d.model_copy(deep=True) for d in assessment.damages]
    damages[index] = damages[index].model_copy(update={"estimated_cost": max(0.0, cost)})
    return _with_damages(assessment, damages)


def add_damage(
    assessment: AIAssessment,
    type: str,
    location: str,
    severity: Severity | str = Severity.MEDIUM,
    estimated_cost: float = 0.0,
    bounding_box: BoundingBox | None = None,
) -> AIAssessment:
    """
    Appends an agent-entered damage.

    Blank type or location leaves the assessment unchanged.
    """
    if not type.strip() or not location.strip():
        return assessment.model_copy(deep=True)

    damage = Damage(
        type=type.strip(),
        location=location.strip(),
        severity=Severity(severity),
        estimated_cost=max(0.0, estimated_cost),
        bounding_box=bounding_box.model_copy() if bounding_box else None,
    )
    damages = [d.model_copy(deep=True) for d in assessment.damages] + [damage]
    return _with_damages(assessment, damages)


def remove_damage(assessment: AIAssessment, index: int) -> AIAssessment:
    damages = [d.model_copy(deep=True) for i, d in enumerate(assessment.damages) if i != index]
    return _with_damages(assessment, damages)


# --- Internal ---

def _with_damages(assessment: AIAssessment, damages: list[Damage]) -> AIAssessment:
    return assessment.model_copy(
        deep=True,
        update={"damages": damages, "total_estimated_cost": total_from_damages(damages)},
    )


def _damage_values(assessment: AIAssessment) -> list[dict]:
    return [d.model_dump(exclude_none=True) for d in assessment.damages]
