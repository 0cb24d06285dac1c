"""
Storage layer - in-memory claim store mirrored to a JSON state file.

Holds every claim in a single list owned by a ClaimStore instance.
Reads hand out copies; writes replace the stored claim and rewrite
the state file. Last writer wins; there is no locking.
"""

import json
import logging
from pathlib import Path

from pydantic import ValidationError

from claims_review.config import (
    CLAIMS_STATE_FILE,
    LEGACY_IMAGE_PREFIX,
    PUBLIC_IMAGE_PREFIX,
    SEED_DATA_PATH,
)
from claims_review.models import (
    Claim,
    ClaimNotFoundError,
    ClaimUpdate,
    StorageError,
)
from claims_review.workflow import apply_update

logger = logging.getLogger(__name__)


class ClaimStore:
    """
    Owns the claim list for one process.

    Usage:
        store = ClaimStore(state_file=Path("claims-state.json"))

        claims = store.list_claims()
        claim = store.get_claim("CLM-001")
        store.update_claim("CLM-001", ClaimUpdate(status="Escalated"))
    """

    def __init__(
        self,
        claims: list[Claim] | None = None,
        state_file: Path | str | None = None,
        seed_path: Path | str | None = None,
    ):
        """
        Explicit claims win; otherwise the state file is loaded when it
        holds a non-empty list, else the seed data.

        state_file=None disables persistence.
        """
        self.state_file = Path(state_file) if state_file is not None else None
        self.seed_path = Path(seed_path or SEED_DATA_PATH)

        if claims is not None:
            self._claims = [c.model_copy(deep=True) for c in claims]
        else:
            self._claims = self._load()

    # --- Public API ---

    def list_claims(self) -> list[Claim]:
        """All claims, as copies the caller may modify freely."""
        return [c.model_copy(deep=True) for c in self._claims]

    def get_claim(self, claim_id: str) -> Claim:
        """
        Raises:
            ClaimNotFoundError: If claim does not exist.
        """
        return self._claims[self._index_of(claim_id)].model_copy(deep=True)

    def update_claim(self, claim_id: str, update: ClaimUpdate) -> Claim:
        """
        Applies a partial update and persists the result.

        Raises:
            ClaimNotFoundError: If claim does not exist.
            InvalidUpdateError: If the update is rejected (state unchanged).
        """
        idx = self._index_of(claim_id)
        current = self._claims[idx]
        updated = apply_update(current, update)

        self._claims[idx] = updated

        if updated.status != current.status:
            logger.info("Claim %s status: '%s' -> '%s'", claim_id, current.status.value, updated.status.value)

        self._persist()
        return updated.model_copy(deep=True)

    def __len__(self) -> int:
        return len(self._claims)

    # --- Internal ---

    def _index_of(self, claim_id: str) -> int:
        for idx, claim in enumerate(self._claims):
            if claim.id == claim_id:
                return idx
        raise ClaimNotFoundError(f"Claim {claim_id} not found")

    def _load(self) -> list[Claim]:
        from_file = self._load_state_file()
        if from_file:
            logger.info("Loaded %d claims from %s", len(from_file), self.state_file)
            return from_file

        seeded = load_seed_claims(self.seed_path)
        logger.info("Loaded %d seed claims from %s", len(seeded), self.seed_path)
        return seeded

    def _load_state_file(self) -> list[Claim] | None:
        """Unreadable or empty state falls back to seed data."""
        if self.state_file is None or not self.state_file.exists():
            return None
        try:
            raw = json.loads(self.state_file.read_text(encoding="utf-8"))
            if not isinstance(raw, list) or not raw:
                return None
            return [Claim.model_validate(item) for item in raw]
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring state file %s: %s", self.state_file, e)
            return None

    def _persist(self) -> None:
        """Best effort: failures are logged, never raised."""
        if self.state_file is None:
            return
        try:
            payload = [c.to_wire() for c in self._claims]
            self.state_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.error("Failed to persist claims to %s: %s", self.state_file, e)


# --- Seed Data ---

def load_seed_claims(path: Path | str) -> list[Claim]:
    """
    Reads raw seed claims and fills in derived fields.

    Raises:
        StorageError: If the seed file is missing or malformed.
    """
    try:
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return [prepare_seed_claim(item) for item in raw]
    except (OSError, ValueError, ValidationError) as e:
        raise StorageError(f"Failed to load seed claims from {path}: {e}")


def prepare_seed_claim(raw: dict) -> Claim:
    """
    Normalizes one raw seed record.

    - status defaults to Pending Review, estimate source to AI only
    - originalAIAssessment defaults to a copy of aiAssessment
    - legacy host image paths are rewritten to public URLs
    - policyholder / claimDate derived for older clients
    """
    claim = Claim.model_validate(raw)
    policy = claim.policy_info
    incident = claim.incident_details

    claim.vehicle_image_url = fix_image_path(claim.vehicle_image_url)
    if claim.annotated_vehicle_image_url:
        claim.annotated_vehicle_image_url = fix_image_path(claim.annotated_vehicle_image_url)
    if claim.agent_annotated_image_url and not claim.agent_annotated_image_url.startswith("data:"):
        claim.agent_annotated_image_url = fix_image_path(claim.agent_annotated_image_url)

    if claim.original_ai_assessment is None:
        claim.original_ai_assessment = claim.ai_assessment.model_copy(deep=True)

    claim.policyholder = policy.driver_name or claim.policyholder or ""
    claim.claim_date = incident.date_time.split("T")[0] if incident.date_time else claim.claim_date or ""
    return claim


def fix_image_path(path: str) -> str:
    if path.startswith(LEGACY_IMAGE_PREFIX):
        return PUBLIC_IMAGE_PREFIX + path[len(LEGACY_IMAGE_PREFIX):]
    return path


# --- Default store ---
# Created once per Lambda container, reused across invocations.

_store: ClaimStore | None = None


def get_store() -> ClaimStore:
    """Lazy-initialized default store with caching."""
    global _store

    if _store is not None:
        return _store

    _store = ClaimStore(state_file=CLAIMS_STATE_FILE)
    return _store


def clear_store_cache() -> None:
    """Drops the cached default store. Testing only."""
    global _store
    _store = None
