import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status

from storefront.api import crud, db
from storefront.api.auth_utils import require_admin
from storefront.api.responses import conflict, envelope
from storefront.api.schemas import RecordStatus, SettingCreate, SettingUpdate, SettingUpsert, changed_fields

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["Settings"])


def _check_name_free(name: str, exclude_id: Optional[int] = None) -> None:
    if crud.name_taken("settings", name, exclude_id=exclude_id):
        raise conflict("A setting with this name already exists")


@router.get("", summary="List settings")
def list_settings() -> Dict[str, Any]:
    rows = db.fetch_all(
        "SELECT * FROM settings WHERE status <> %s ORDER BY name ASC", [RecordStatus.deleted.value]
    )
    return envelope(rows, "Settings retrieved successfully")


@router.put("/bulk", tags=["Admin"], summary="Create or update several settings")
def bulk_upsert_settings(
    payload: List[SettingUpsert], _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    """
    Upsert settings by name in one transaction.

    Each entry updates the non-deleted setting of that name (matched
    case-insensitively, like ``POST /settings`` uniqueness), or creates it;
    the result lists ``{name, action}`` with action ``created`` or ``updated``.
    """
    results = []
    with db.transaction() as tx:
        for entry in payload:
            updated = tx.execute(
                "UPDATE settings SET value=%s, updated_at=NOW() WHERE LOWER(name)=LOWER(%s) AND status <> %s",
                [entry.value, entry.name, RecordStatus.deleted.value],
            )
            if updated:
                results.append({"name": entry.name, "action": "updated"})
                continue
            tx.execute(
                "INSERT INTO settings (name, value, status) VALUES (%s, %s, %s)",
                [entry.name, entry.value, RecordStatus.active.value],
            )
            results.append({"name": entry.name, "action": "created"})
    logger.info("Bulk settings update: %d entries", len(results))
    return envelope(results, "Settings updated successfully")


@router.get("/{setting_id}", tags=["Admin"], summary="Get setting")
def get_setting(setting_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    return envelope(crud.get_or_404("settings", setting_id, "Setting"), "Setting retrieved successfully")


@router.post("", status_code=status.HTTP_201_CREATED, tags=["Admin"], summary="Create setting")
def create_setting(payload: SettingCreate, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    _check_name_free(payload.name)
    row = crud.insert("settings", {**payload.model_dump(), "status": RecordStatus.active.value})
    return envelope(row, "Setting created successfully", status.HTTP_201_CREATED)


@router.put("/{setting_id}", tags=["Admin"], summary="Update setting")
def update_setting(
    setting_id: int, payload: SettingUpdate, _: Dict[str, Any] = Depends(require_admin)
) -> Dict[str, Any]:
    values = changed_fields(payload)
    if "name" in values:
        _check_name_free(values["name"], exclude_id=setting_id)
    return envelope(crud.update("settings", setting_id, values, "Setting"), "Setting updated successfully")


@router.delete("/{setting_id}", tags=["Admin"], summary="Delete setting")
def delete_setting(setting_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
    crud.get_or_404("settings", setting_id, "Setting")
    crud.set_status("settings", setting_id, RecordStatus.deleted, "Setting")
    return envelope(None, "Setting deleted successfully")
