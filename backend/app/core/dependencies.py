"""
Shared FastAPI dependencies.

Provides the remote service clients, the ledger read cache, the workspace
registry and the operator name used for auditing.
"""

from typing import Optional
from fastapi import Depends, Header, Path

from backend.app.core.redis_client import get_redis
from backend.app.services.cache import LedgerReadCache
from backend.app.services.customer_workspace import CustomerWorkspace
from backend.app.services.ledger_client import CatalogClient, LedgerClient
from backend.app.services.workspace_registry import WorkspaceRegistry, workspace_registry

_clients = {}


def get_ledger_client() -> LedgerClient:
    """Process-wide ledger client, created on first use."""
    if "ledger" not in _clients:
        _clients["ledger"] = LedgerClient()
    return _clients["ledger"]


def get_catalog_client() -> CatalogClient:
    """Process-wide catalog client, created on first use."""
    if "catalog" not in _clients:
        _clients["catalog"] = CatalogClient()
    return _clients["catalog"]


async def close_clients() -> None:
    for client in _clients.values():
        await client.aclose()
    _clients.clear()


async def get_ledger_cache(redis=Depends(get_redis)) -> LedgerReadCache:
    return LedgerReadCache(redis)


def get_workspace_registry() -> WorkspaceRegistry:
    return workspace_registry


def get_workspace(
    workspace_id: str = Path(..., description="Workspace ID"),
    registry: WorkspaceRegistry = Depends(get_workspace_registry),
) -> CustomerWorkspace:
    """
    Resolve the workspace addressed by the request path.

    Raises:
        NotFoundError: 404 if the workspace does not exist
    """
    return registry.get(workspace_id)


def get_operator(x_operator: Optional[str] = Header(None)) -> Optional[str]:
    """Operator name forwarded by the console shell; authentication is out of scope."""
    return x_operator
