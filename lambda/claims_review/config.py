import os
from pathlib import Path
"""
Configuration for the claims review service.

All paths, limits, thresholds, and allow-lists in one place.
Change here, not in business logic modules.
"""

_PACKAGE_DIR = Path(__file__).parent

# --- Workflow ---

# Source status -> statuses it may move to. Same-status updates are always allowed.
ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    "Pending Review": {"Awaiting approval", "Escalated"},
    "Pending - Returned for Update": {"Awaiting approval", "Escalated"},
    "Awaiting approval": {"Pending Review"},
    "Escalated": {"Pending Review"},
}

REVIEW_QUEUE_STATUSES: tuple[str, ...] = ("Pending Review", "Pending - Returned for Update")

# Claims below this AI confidence are flagged on the dashboard
LOW_CONFIDENCE_THRESHOLD: float = 0.9

# --- Storage ---

CLAIMS_STATE_FILE: str = os.environ.get("CLAIMS_STATE_FILE", "claims-state.json")
SEED_DATA_PATH: str = os.environ.get("SEED_DATA_PATH", str(_PACKAGE_DIR / "data" / "mock_claims.json"))

# Seed data was exported with absolute paths from the imaging host
LEGACY_IMAGE_PREFIX: str = "/home/ubuntu/mock_images/"
PUBLIC_IMAGE_PREFIX: str = "/images/"

# --- Images ---

IMAGE_ROOT: str = os.environ.get("IMAGE_ROOT", "public/images")
UPLOADS_SUBDIR: str = "uploads"
ANNOTATED_SUBDIR: str = "annotated/edited_by_claims_agent"

MAX_IMAGE_SIZE_MB: float = 10.0
ALLOWED_IMAGE_FORMATS: set[str] = {"JPEG", "PNG", "GIF", "WEBP"}

SAFE_FILENAME_PATTERN: str = r"^[a-zA-Z0-9_.-]+$"
DEFAULT_IMAGE_EXTENSION: str = "jpg"

CONTENT_TYPES: dict[str, str] = {
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}

# --- Reference Data ---

REFERENCE_DATA_PATH: str = os.environ.get(
    "REFERENCE_DATA_PATH", str(_PACKAGE_DIR / "data" / "reference_database.json")
)

# Vehicle value range shown next to the policy valuation
VALUE_RANGE_LOW: float = 0.7
VALUE_RANGE_HIGH: float = 1.3

# Component names used to match free-text damage types to reference entries
DAMAGE_KEYWORDS: tuple[str, ...] = (
    "bumper", "hood", "headlight", "tail", "door", "windshield", "grille",
    "quarter", "fender", "paint", "mirror", "frame", "cab", "pillar",
    "structure", "steering", "water", "hail", "destruction",
)

# --- Logging ---

LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")
