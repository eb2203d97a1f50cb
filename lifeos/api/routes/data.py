"""
AppData endpoints: read, replace and delete the caller's document, plus the
derived dashboard overview.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from lifeos.api.middleware.user_auth import AuthenticatedUser, get_current_user
from lifeos.api.models import DeleteResponse, SaveResponse
from lifeos.appdata.insights import overview
from lifeos.appdata.models import AppData
from lifeos.appdata.repository import AppDataCorruptError, get_store
from lifeos.observability.logging import get_logger
from lifeos.observability.telemetry import counter
from lifeos.utils.dates import to_timestamp

router = APIRouter(prefix="/api/data", tags=["data"])
logger = get_logger(__name__)


def load_or_500(user_id: str) -> AppData:
    """Load the caller's document, answering unreadable storage with a 500."""
    try:
        return get_store().load(user_id)
    except AppDataCorruptError as e:
        logger.error("Unreadable document for user %s: %s", user_id, e)
        raise HTTPException(status_code=500, detail="Stored data could not be read") from None


@router.get("")
def get_data(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    """
    The caller's document, created with starter data on first use.

    Side Effects:
        - May insert the starter document
        - May credit EMIs that fell due since the last load and save them
    """
    return load_or_500(user.id).to_json_dict()


@router.put("", response_model=SaveResponse, response_model_by_alias=True)
def save_data(
    data: AppData,
    sync: bool = Query(False, description="Write to the database before responding"),
    user: AuthenticatedUser = Depends(get_current_user),
) -> SaveResponse:
    """
    Replace the caller's document.

    The write is debounced unless ``sync`` is set; reads see the new state
    immediately either way.

    Side Effects:
        - Updates the in-process cache
        - Schedules (or performs) a write to the users table
    """
    try:
        get_store().save(user.id, data, sync=sync)
    except Exception as e:
        logger.error("Failed to save document for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to save data") from None

    counter("api.data.saved")
    return SaveResponse(persisted=sync, updated_at=to_timestamp(datetime.now()))


@router.delete("", response_model=DeleteResponse)
def delete_data(user: AuthenticatedUser = Depends(get_current_user)) -> DeleteResponse:
    deleted = get_store().delete(user.id)
    return DeleteResponse(success=True, deleted=deleted)


@router.get("/overview")
def get_overview(user: AuthenticatedUser = Depends(get_current_user)) -> dict[str, Any]:
    """Dashboard numbers computed from the current document."""
    return overview(load_or_500(user.id)).to_dict()
