"""
Domain models for the claims review service.

All Pydantic models in one place. Imported by estimate, workflow,
storage, queries, reference, images, and handler modules. Single
source of truth for data contracts.

Attributes are snake_case; the wire format is the camelCase JSON the
review UI consumes. Serialize with ``to_wire()``.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exchanging camelCase JSON, accepting either spelling on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# --- Domain Enums ---

class ClaimStatus(str, Enum):
    """
    Review workflow states. Inherits str so Pydantic serializes
    to the display label without extra conversion.
    """
    PENDING_REVIEW = "Pending Review"
    RETURNED_FOR_UPDATE = "Pending - Returned for Update"
    AWAITING_APPROVAL = "Awaiting approval"
    ESCALATED = "Escalated"


class EstimateSource(str, Enum):
    """Provenance of the damage estimate currently on a claim."""
    AI_ONLY = "AI only"
    EDITED_BY_AGENT = "Edited by claims agent"
    AGENT_ONLY = "Claims agent only"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


# --- Assessment Context ---

class MarkerPosition(CamelModel):
    """Legacy point marker, percent of image width/height."""
    x: float = Field(ge=0.0, le=100.0)
    y: float = Field(ge=0.0, le=100.0)


class BoundingBox(CamelModel):
    """Rectangle in percent of image size; (x, y) is the top-left corner."""
    x: float = Field(ge=0.0, le=100.0)
    y: float = Field(ge=0.0, le=100.0)
    width: float = Field(ge=0.0, le=100.0)
    height: float = Field(ge=0.0, le=100.0)


class Damage(CamelModel):
    """One damage line item."""
    type: str
    location: str
    severity: Severity
    estimated_cost: float = Field(ge=0.0)
    marker_position: MarkerPosition | None = None
    bounding_box: BoundingBox | None = None


class AIAssessment(CamelModel):
    """
    Damage assessment for a claim.

    total_estimated_cost equals the sum of damage costs, or the
    total-loss value when is_total_loss is set.
    """
    confidence_score: float = Field(ge=0.0, le=1.0)
    total_estimated_cost: float = Field(ge=0.0)
    damages: list[Damage] = []
    is_total_loss: bool | None = None
    total_loss_value: float | None = Field(None, ge=0.0)
    total_loss_reason: str | None = None


# --- Claim Context ---

class VehicleDetails(CamelModel):
    license_plate: str = ""
    vin: str = ""
    make: str = ""
    model: str = ""
    year: int = 0


class DriverLicense(CamelModel):
    number: str = ""
    state: str = ""


class PolicyInfo(CamelModel):
    policy_number: str
    vehicle_details: VehicleDetails = Field(default_factory=VehicleDetails)
    driver_name: str = ""
    driver_contact: str = ""
    driver_license: DriverLicense = Field(default_factory=DriverLicense)
    was_policyholder_driving: str = ""
    estimated_vehicle_value: float | None = Field(None, ge=0.0)
    total_loss_threshold: float | None = Field(None, ge=0.0, le=1.0)


class IncidentDetails(CamelModel):
    date_time: str = ""
    location: str = ""
    description: str = ""
    type: str = ""
    speed_of_travel: str = ""


class OtherParty(CamelModel):
    name: str = ""
    contact: str = ""
    policy_number: str = ""
    vehicle_details: str = ""


class PoliceReport(CamelModel):
    report_number: str = ""
    was_police_called: str = ""


class DamageDetails(CamelModel):
    description: str = ""
    is_drivable: str = ""
    personal_property_damaged: str = ""
    prior_existing_damage: str = ""


class RepairInfo(CamelModel):
    preferred_shop: str = ""
    estimates_obtained: str = ""
    towing_receipts: str = ""
    rental_car_needs: str = ""


class InjuryInfo(CamelModel):
    was_anyone_injured: str = ""
    injury_description: str = ""
    medical_provider: str = ""


class TheftInfo(CamelModel):
    proof_of_ownership: str = ""
    stolen_items: str = ""
    spare_key_confirmation: str = ""


class Claim(CamelModel):
    """A claim as held by the store and returned by the API."""
    id: str
    policy_info: PolicyInfo
    incident_details: IncidentDetails = Field(default_factory=IncidentDetails)
    other_parties: list[OtherParty] = []
    police_report: PoliceReport = Field(default_factory=PoliceReport)
    damage_details: DamageDetails = Field(default_factory=DamageDetails)
    repair_info: RepairInfo = Field(default_factory=RepairInfo)
    injury_info: InjuryInfo = Field(default_factory=InjuryInfo)
    theft_info: TheftInfo = Field(default_factory=TheftInfo)

    # Workflow - typed via enum, no magic strings
    status: ClaimStatus = ClaimStatus.PENDING_REVIEW

    vehicle_image_url: str = ""
    annotated_vehicle_image_url: str | None = None
    agent_annotated_image_url: str | None = None

    ai_assessment: AIAssessment
    original_ai_assessment: AIAssessment | None = Field(None, alias="originalAIAssessment")
    estimate_source: EstimateSource = EstimateSource.AI_ONLY

    # Legacy fields kept for older dashboard clients
    policyholder: str | None = None
    claim_date: str | None = None


class ClaimUpdate(CamelModel):
    """
    Partial update request for PATCH /claims/{id}.

    Every field is optional. status and estimate_source stay plain
    strings here and are validated by the workflow, so a bad value is
    reported as a rejected update rather than a malformed payload.

    agent_annotated_image_url distinguishes "absent" (unchanged) from
    an explicit null (clear the agent image).
    """
    status: str | None = None
    ai_assessment: AIAssessment | None = None
    estimate_source: str | None = None
    agent_annotated_image_url: str | None = None
    original_ai_assessment: AIAssessment | None = Field(None, alias="originalAIAssessment")

    @property
    def clears_agent_image(self) -> bool:
        return "agent_annotated_image_url" in self.model_fields_set and self.agent_annotated_image_url is None


# --- Query Context ---

class ClaimStats(CamelModel):
    """Dashboard counters."""
    total: int = 0
    pending: int = 0
    pending_returned: int = 0
    sent_for_review: int = 0
    escalated: int = 0
    low_confidence: int = 0


# --- Reference Context ---

class CostRange(CamelModel):
    min: float
    max: float


class CostDataSource(CamelModel):
    source: str
    record_count: int | str = "N/A"
    average_cost: float | None = None
    notes: str = ""


class DamageTypeReference(CamelModel):
    type: str
    average_cost: float
    cost_range: CostRange
    data_sources: list[CostDataSource] = []


class ValueDataSource(CamelModel):
    source: str
    record_count: int | str = "N/A"
    average_value: float | None = None
    notes: str = ""


class VehicleValuation(CamelModel):
    make: str
    model: str
    year: int
    average_value: float
    value_range: CostRange
    data_sources: list[ValueDataSource] = []


# --- Image Context ---

class ImageUploadResult(CamelModel):
    """Public URL of a stored image."""
    image_url: str


# --- Exceptions ---

class StorageError(Exception):
    """Claim state could not be loaded."""
    pass


class ClaimNotFoundError(Exception):
    """Requested claim does not exist."""
    pass


class InvalidUpdateError(Exception):
    """Update blocked by workflow rules (unknown value, disallowed transition)."""
    pass


class InvalidImageError(Exception):
    """Image payload missing or not in the expected form."""
    pass


class ImageStorageError(Exception):
    """Image could not be decoded or written."""
    pass


class InvalidFilenameError(Exception):
    """Requested filename is unsafe (path traversal, odd characters)."""
    pass


class ImageNotFoundError(Exception):
    """Requested image does not exist."""
    pass


class ReferenceNotFoundError(Exception):
    """No reference data for the requested damage type or vehicle."""
    pass
