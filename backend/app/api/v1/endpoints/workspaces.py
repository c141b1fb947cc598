"""
Workspace API Endpoints.

Open a customer workspace, switch its customer, reload it and list the
sections the operator can select.
"""

from fastapi import APIRouter, Depends, Path, status
from typing import List

from backend.app.core.dependencies import (
    get_catalog_client,
    get_ledger_cache,
    get_ledger_client,
    get_workspace,
    get_workspace_registry,
)
from backend.app.schemas.workspace import SectionState, WorkspaceOpen, WorkspaceResponse
from backend.app.services.cache import LedgerReadCache
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.ledger_client import CatalogClient, LedgerClient
from backend.app.services.workspace_registry import WorkspaceRegistry
from backend.app.services.workspace_views import sections_view, workspace_view

router = APIRouter(prefix="/workspaces", tags=["Workspaces"])


@router.post("", response_model=WorkspaceResponse, status_code=status.HTTP_201_CREATED)
async def open_workspace(
    body: WorkspaceOpen,
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
    ledger: LedgerClient = Depends(get_ledger_client),
    catalog: CatalogClient = Depends(get_catalog_client),
    cache: LedgerReadCache = Depends(get_ledger_cache),
):
    """
    Open a workspace on a customer and load its ledger.

    The workspace is discarded again when the first load fails, so a
    missing customer does not leave an empty workspace behind.
    """
    workspace = registry.create(ledger, catalog, cache)
    try:
        await workspace.open_customer(body.customer_id)
    except Exception:
        registry.discard(workspace.workspace_id)
        raise
    return workspace_view(workspace)


@router.get("/{workspace_id}", response_model=WorkspaceResponse)
async def get_workspace_snapshot(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Current projection, history and gates."""
    return workspace_view(workspace)


@router.put("/{workspace_id}/customer", response_model=WorkspaceResponse)
async def switch_customer(body: WorkspaceOpen, workspace: CustomerWorkspace = Depends(get_workspace)):
    """
    Move the workspace to another customer.

    Unsent forms of the previous customer are dropped; results of calls
    still in flight for it are discarded when they arrive.
    """
    await workspace.open_customer(body.customer_id)
    return workspace_view(workspace)


@router.post("/{workspace_id}/reload", response_model=WorkspaceResponse)
async def reload_workspace(workspace: CustomerWorkspace = Depends(get_workspace)):
    """Re-read customer, summary and history, bypassing cached reads."""
    await workspace.reload(fresh=True)
    return workspace_view(workspace)


@router.get("/{workspace_id}/sections", response_model=List[SectionState])
async def list_sections(workspace: CustomerWorkspace = Depends(get_workspace)):
    return sections_view(workspace)


@router.delete("/{workspace_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_workspace(
    workspace_id: str = Path(..., description="Workspace ID"),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
):
    registry.discard(workspace_id)
