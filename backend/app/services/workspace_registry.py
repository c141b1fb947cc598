"""
In-memory registry of open customer workspaces.

Workspaces hold unsent form state only; losing them on restart loses
nothing the ledger owns.
"""

import uuid
from typing import Dict

from backend.app.core.exceptions import NotFoundError
from backend.app.services.cache import LedgerReadCache
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.ledger_client import CatalogClient, LedgerClient


class WorkspaceRegistry:

    def __init__(self):
        self._workspaces: Dict[str, CustomerWorkspace] = {}

    def create(self, ledger: LedgerClient, catalog: CatalogClient, cache: LedgerReadCache) -> CustomerWorkspace:
        workspace_id = uuid.uuid4().hex
        workspace = CustomerWorkspace(workspace_id, ledger, catalog, cache)
        self._workspaces[workspace_id] = workspace
        return workspace

    def get(self, workspace_id: str) -> CustomerWorkspace:
        workspace = self._workspaces.get(workspace_id)
        if workspace is None:
            raise NotFoundError("Workspace", workspace_id)
        return workspace

    def discard(self, workspace_id: str) -> None:
        self.get(workspace_id)
        del self._workspaces[workspace_id]

    def clear(self) -> None:
        self._workspaces.clear()

    def __len__(self) -> int:
        return len(self._workspaces)


workspace_registry = WorkspaceRegistry()
