"""
Lambda entry point - routes review UI requests.

Parses API Gateway events, hands them to the store, workflow, image,
and reference contexts, and formats HTTP responses.

No business logic lives here beyond query parsing and error mapping.
"""

import base64
import json
import logging
from datetime import datetime, timezone
from typing import Any
from urllib.parse import unquote

from pydantic import ValidationError

from claims_review.images import read_uploaded_image, save_annotated_image, save_uploaded_image
from claims_review.logs import setup_logging
from claims_review.models import (
    ClaimNotFoundError,
    ClaimUpdate,
    ImageNotFoundError,
    ImageStorageError,
    InvalidFilenameError,
    InvalidImageError,
    InvalidUpdateError,
    ReferenceNotFoundError,
    StorageError,
)
from claims_review.queries import claim_stats, filter_claims, review_queue, sort_claims
from claims_review.reference import find_damage_reference, vehicle_valuation
from claims_review.storage import ClaimStore, get_store
from claims_review.workflow import parse_estimate_source, parse_status

setup_logging()
logger = logging.getLogger(__name__)

# First path segment of every route; anything before it is a stage prefix
_ROUTE_ROOTS = ("claims", "uploads", "reference")

_NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


# --- Lambda Entry Point ---

def lambda_handler(event: dict, context: Any, store: ClaimStore | None = None) -> dict:
    """
    AWS Lambda handler for API Gateway HTTP API (v2).

    Routes:
    - GET   /claims                         (?status, estimateSource, q, sort, order)
    - GET   /claims/stats
    - GET   /claims/queue
    - GET   /claims/{claim_id}
    - PATCH /claims/{claim_id}
    - GET   /claims/{claim_id}/vehicle-value
    - POST  /claims/{claim_id}/upload-image
    - POST  /claims/{claim_id}/save-image
    - GET   /uploads/{filename}
    - GET   /reference/damage-types         (?type)

    store defaults to the per-container store; tests pass their own.

    Never raises exceptions - all errors converted to HTTP responses.
    """
    try:
        http_method = event["requestContext"]["http"]["method"]
        path = event["requestContext"]["http"]["path"]
        parts = _route_parts(path)
        logger.info("%s %s", http_method, path)

        if parts[:1] == ["claims"]:
            if store is None:
                try:
                    store = get_store()
                except StorageError as e:
                    return _error_response(500, "STORAGE_ERROR", str(e))

            if http_method == "GET" and len(parts) == 1:
                return _handle_list_claims(event, store)
            if http_method == "GET" and parts[1:] == ["stats"]:
                return _handle_stats(store)
            if http_method == "GET" and parts[1:] == ["queue"]:
                return _handle_queue(store)
            if http_method == "GET" and len(parts) == 2:
                return _handle_get_claim(parts[1], store)
            if http_method == "PATCH" and len(parts) == 2:
                return _handle_update_claim(event, parts[1], store)
            if http_method == "GET" and len(parts) == 3 and parts[2] == "vehicle-value":
                return _handle_vehicle_value(parts[1], store)
            if http_method == "POST" and len(parts) == 3 and parts[2] == "upload-image":
                return _handle_upload_image(event, parts[1], store)
            if http_method == "POST" and len(parts) == 3 and parts[2] == "save-image":
                return _handle_save_image(event, parts[1], store)

        if http_method == "GET" and len(parts) == 2 and parts[0] == "uploads":
            return _handle_serve_upload(parts[1])

        if http_method == "GET" and parts == ["reference", "damage-types"]:
            return _handle_damage_reference(event)

        return _error_response(404, "NOT_FOUND", "Route not found")

    except Exception:
        logger.exception("Unhandled error")
        return _error_response(500, "INTERNAL_ERROR", "An unexpected error occurred")


# --- Claim Routes ---

def _handle_list_claims(event: dict, store: ClaimStore) -> dict:
    """GET /claims - all claims, optionally filtered, searched, and sorted."""
    params = event.get("queryStringParameters") or {}

    try:
        status = params.get("status")
        source = params.get("estimateSource")
        claims = filter_claims(
            store.list_claims(),
            status=parse_status(status) if status and status != "All" else None,
            estimate_source=parse_estimate_source(source) if source and source != "All" else None,
            search=params.get("q"),
        )
        if params.get("sort"):
            claims = sort_claims(claims, params["sort"], descending=params.get("order") == "desc")
    except (InvalidUpdateError, ValueError) as e:
        return _error_response(400, "INVALID_QUERY", str(e))

    return _success_response(200, [c.to_wire() for c in claims], headers=_NO_STORE_HEADERS)


def _handle_stats(store: ClaimStore) -> dict:
    """GET /claims/stats - dashboard counters."""
    return _success_response(200, claim_stats(store.list_claims()).to_wire(), headers=_NO_STORE_HEADERS)


def _handle_queue(store: ClaimStore) -> dict:
    """GET /claims/queue - claims awaiting an agent."""
    claims = review_queue(store.list_claims())
    return _success_response(200, [c.to_wire() for c in claims], headers=_NO_STORE_HEADERS)


def _handle_get_claim(claim_id: str, store: ClaimStore) -> dict:
    """GET /claims/{claim_id}"""
    try:
        claim = store.get_claim(claim_id)
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    logger.info("Returning claim %s with status '%s'", claim_id, claim.status.value)
    return _success_response(200, claim.to_wire(), headers=_NO_STORE_HEADERS)


def _handle_update_claim(event: dict, claim_id: str, store: ClaimStore) -> dict:
    """PATCH /claims/{claim_id} - partial update, all or nothing."""
    try:
        store.get_claim(claim_id)
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    body = _parse_body(event)
    if body is None:
        return _error_response(400, "INVALID_REQUEST", "Invalid JSON body")

    try:
        update = ClaimUpdate.model_validate(body)
    except ValidationError as e:
        return _error_response(400, "INVALID_REQUEST", "Invalid update payload", details=_validation_details(e))

    try:
        updated = store.update_claim(claim_id, update)
    except InvalidUpdateError as e:
        return _error_response(400, "INVALID_UPDATE", str(e))
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    return _success_response(200, updated.to_wire(), headers=_NO_STORE_HEADERS)


def _handle_vehicle_value(claim_id: str, store: ClaimStore) -> dict:
    """GET /claims/{claim_id}/vehicle-value - valuation range and sources."""
    try:
        claim = store.get_claim(claim_id)
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    policy = claim.policy_info
    if not policy.estimated_vehicle_value:
        return _error_response(404, "REFERENCE_NOT_FOUND", f"No vehicle value recorded for claim {claim_id}")

    vehicle = policy.vehicle_details
    try:
        valuation = vehicle_valuation(vehicle.make, vehicle.model, vehicle.year, policy.estimated_vehicle_value)
    except StorageError as e:
        return _error_response(500, "STORAGE_ERROR", str(e))

    return _success_response(200, valuation.to_wire())


# --- Image Routes ---

def _handle_upload_image(event: dict, claim_id: str, store: ClaimStore) -> dict:
    """POST /claims/{claim_id}/upload-image - store an additional photo."""
    try:
        store.get_claim(claim_id)
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    body = _parse_body(event)
    if body is None:
        return _error_response(400, "INVALID_REQUEST", "Invalid JSON body")

    try:
        file_name = body.get("fileName")
        result = save_uploaded_image(
            claim_id,
            body.get("imageData"),
            file_name if isinstance(file_name, str) else None,
        )
    except InvalidImageError as e:
        return _error_response(400, "INVALID_IMAGE", str(e))
    except ImageStorageError as e:
        logger.error("Error uploading image for claim %s: %s", claim_id, e)
        return _error_response(500, "IMAGE_STORAGE_ERROR", "Failed to upload image")

    return _success_response(200, result.to_wire())


def _handle_save_image(event: dict, claim_id: str, store: ClaimStore) -> dict:
    """POST /claims/{claim_id}/save-image - store the agent-annotated photo."""
    try:
        store.get_claim(claim_id)
    except ClaimNotFoundError as e:
        return _error_response(404, "CLAIM_NOT_FOUND", str(e))

    body = _parse_body(event)
    if body is None:
        return _error_response(400, "INVALID_REQUEST", "Invalid JSON body")

    try:
        result = save_annotated_image(claim_id, body.get("imageDataUrl"))
    except InvalidImageError as e:
        return _error_response(400, "INVALID_IMAGE", str(e))
    except ImageStorageError as e:
        logger.error("Error saving annotated image for claim %s: %s", claim_id, e)
        return _error_response(500, "IMAGE_STORAGE_ERROR", "Failed to save image")

    return _success_response(200, result.to_wire())


def _handle_serve_upload(filename: str) -> dict:
    """GET /uploads/{filename} - raw image bytes, base64 for API Gateway."""
    try:
        content, content_type = read_uploaded_image(filename)
    except InvalidFilenameError:
        return _error_response(400, "INVALID_FILENAME", "Invalid filename")
    except ImageNotFoundError:
        return _error_response(404, "IMAGE_NOT_FOUND", "Image not found")

    return {
        "statusCode": 200,
        "headers": {
            "Content-Type": content_type,
            "Cache-Control": "private, max-age=3600",
        },
        "body": base64.b64encode(content).decode(),
        "isBase64Encoded": True,
    }


# --- Reference Routes ---

def _handle_damage_reference(event: dict) -> dict:
    """GET /reference/damage-types?type=... - cost statistics for a damage type."""
    damage_type = (event.get("queryStringParameters") or {}).get("type")
    if not damage_type:
        return _error_response(400, "INVALID_REQUEST", "Missing required query parameter: type")

    try:
        reference = find_damage_reference(damage_type)
    except ReferenceNotFoundError as e:
        return _error_response(404, "REFERENCE_NOT_FOUND", str(e))
    except StorageError as e:
        return _error_response(500, "STORAGE_ERROR", str(e))

    return _success_response(200, reference.to_wire())


# --- Request Helpers ---

def _route_parts(path: str) -> list[str]:
    """
    Path segments starting at the route root.

    /v1/claims/CLM-001 → ["claims", "CLM-001"]
    """
    parts = [unquote(p) for p in path.split("/") if p]
    for idx, part in enumerate(parts):
        if part in _ROUTE_ROOTS:
            return parts[idx:]
    return []


def _parse_body(event: dict) -> dict | None:
    """JSON object body, or None when missing or malformed."""
    raw = event.get("body") or ""
    try:
        if event.get("isBase64Encoded"):
            raw = base64.b64decode(raw).decode("utf-8")
        body = json.loads(raw)
    except (ValueError, UnicodeDecodeError):
        return None
    return body if isinstance(body, dict) else None


def _validation_details(error: ValidationError) -> list[dict]:
    return [
        {"field": ".".join(str(loc) for loc in e["loc"]), "message": e["msg"]}
        for e in error.errors()
    ]


# --- Response Helpers ---

def _success_response(status_code: int, data: Any, headers: dict | None = None) -> dict:
    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
            **(headers or {}),
        },
        "body": json.dumps(data),
    }


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict | list | str | None = None,
) -> dict:
    error_body: dict[str, Any] = {
        "error": {
            "code": code,
            "message": message,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if details is not None:
        error_body["error"]["details"] = details

    if status_code >= 500:
        logger.error("%s: %s", code, message)
    else:
        logger.warning("%s: %s", code, message)

    return {
        "statusCode": status_code,
        "headers": {
            "Content-Type": "application/json",
            "Access-Control-Allow-Origin": "*",
        },
        "body": json.dumps(error_body),
    }
