# In lambda/ folder

import base64
import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Add lambda/ directory to Python path
lambda_dir = Path(__file__).parent.parent
sys.path.insert(0, str(lambda_dir))

from claims_review.config import SEED_DATA_PATH  # noqa: E402
from claims_review.models import AIAssessment, Damage  # noqa: E402
from claims_review.reference import clear_reference_cache  # noqa: E402
from claims_review.storage import ClaimStore, clear_store_cache, load_seed_claims  # noqa: E402


# ============================================================================
# HELPERS
# ============================================================================

def make_damage(type="Bumper Damage", location="Rear", severity="High", cost=1000.0, **extra) -> Damage:
    return Damage(type=type, location=location, severity=severity, estimated_cost=cost, **extra)


def make_assessment(damages=None, total=None, confidence=0.94, **extra) -> AIAssessment:
    """Assessment whose total defaults to the sum of its damages."""
    damages = damages if damages is not None else []
    if total is None:
        total = sum(d.estimated_cost for d in damages)
    return AIAssessment(confidence_score=confidence, total_estimated_cost=total, damages=damages, **extra)


def image_base64(fmt="PNG", size=(64, 48), color="red") -> str:
    img = Image.new("RGB", size, color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return base64.b64encode(buf.getvalue()).decode()


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def clear_caches():
    yield
    clear_store_cache()
    clear_reference_cache()


@pytest.fixture
def seed_claims():
    """Bundled seed claims, normalized the way the store loads them."""
    return load_seed_claims(SEED_DATA_PATH)


@pytest.fixture
def state_file(tmp_path):
    return tmp_path / "claims-state.json"


@pytest.fixture
def store(state_file):
    """Seeded store persisting to a temporary state file."""
    return ClaimStore(state_file=state_file)


@pytest.fixture
def image_root(tmp_path):
    root = tmp_path / "images"
    root.mkdir()
    return root
