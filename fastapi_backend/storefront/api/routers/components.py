"""Hardware component catalogues: CPUs, RAM, storage, graphics cards and displays."""
import logging
from typing import Any, Dict, Optional, Type

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel

from storefront.api import crud
from storefront.api.auth_utils import require_admin
from storefront.api.responses import PageParams, envelope, paginated
from storefront.api.schemas import (
    CpuCreate,
    CpuUpdate,
    DisplayCreate,
    DisplayUpdate,
    GraphicsCardCreate,
    GraphicsCardUpdate,
    RamCreate,
    RamUpdate,
    RecordStatus,
    StatusUpdate,
    StorageCreate,
    StorageUpdate,
    changed_fields,
)

logger = logging.getLogger(__name__)


def build_component_router(
    prefix: str,
    table: str,
    entity: str,
    create_model: Type[BaseModel],
    update_model: Type[BaseModel],
) -> APIRouter:
    """CRUD router for one component table; reads are public, writes are admin only."""
    router = APIRouter(prefix=prefix, tags=["Components"])

    @router.get("", summary=f"List {entity} records")
    def list_components(
        page: PageParams = Depends(),
        search: Optional[str] = Query(None, description="Search by name"),
    ) -> Dict[str, Any]:
        conditions, params = crud.search_condition(["name"], search)
        rows, total = crud.list_page(table, page, conditions=conditions, params=params)
        return paginated(rows, total, page, f"{entity} list retrieved successfully")

    @router.get("/{component_id}", summary=f"Get {entity}")
    def get_component(component_id: int) -> Dict[str, Any]:
        return envelope(crud.get_or_404(table, component_id, entity), f"{entity} retrieved successfully")

    @router.post("", status_code=status.HTTP_201_CREATED, summary=f"Create {entity}")
    def create_component(payload: create_model, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:  # type: ignore[valid-type]
        row = crud.insert(table, payload.model_dump())
        logger.info("%s created id=%s", entity, row["id"])
        return envelope(row, f"{entity} created successfully", status.HTTP_201_CREATED)

    @router.put("/{component_id}", summary=f"Update {entity}")
    def update_component(
        component_id: int,
        payload: update_model,  # type: ignore[valid-type]
        _: Dict[str, Any] = Depends(require_admin),
    ) -> Dict[str, Any]:
        row = crud.update(table, component_id, changed_fields(payload), entity)
        return envelope(row, f"{entity} updated successfully")

    @router.put("/{component_id}/status", summary=f"Change {entity} status")
    def update_component_status(
        component_id: int,
        payload: StatusUpdate,
        _: Dict[str, Any] = Depends(require_admin),
    ) -> Dict[str, Any]:
        row = crud.set_status(table, component_id, payload.status, entity)
        return envelope(row, f"{entity} status updated successfully")

    @router.delete("/{component_id}", summary=f"Delete {entity}")
    def delete_component(component_id: int, _: Dict[str, Any] = Depends(require_admin)) -> Dict[str, Any]:
        crud.get_or_404(table, component_id, entity)
        crud.set_status(table, component_id, RecordStatus.deleted, entity)
        return envelope(None, f"{entity} deleted successfully")

    return router


cpus_router = build_component_router("/cpus", "cpus", "CPU", CpuCreate, CpuUpdate)
ram_router = build_component_router("/ram", "ram", "RAM", RamCreate, RamUpdate)
storages_router = build_component_router("/storages", "hard_drives", "Storage", StorageCreate, StorageUpdate)
graphics_cards_router = build_component_router(
    "/graphics-cards", "graphics_cards", "Graphics card", GraphicsCardCreate, GraphicsCardUpdate
)
displays_router = build_component_router("/displays", "displays", "Display", DisplayCreate, DisplayUpdate)

routers = [cpus_router, ram_router, storages_router, graphics_cards_router, displays_router]
