"""
workforce_core.api.routers.users

Principal provisioning and administration endpoints.

Responsibilities:
- Provision users (admins: any role; agents: employees they supervise).
- Read principals, list users, active agents and an agent's employees.
- Toggle activation, send welcome notifications.
- Expose the orphaned-identity reconciliation operations to admins.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from starlette.status import HTTP_201_CREATED, HTTP_403_FORBIDDEN, HTTP_404_NOT_FOUND

from workforce_core.api.deps import provisioning_dep, unwrap
from workforce_core.auth.deps import get_caller, require_roles
from workforce_core.auth.models import Caller
from workforce_core.domain.principals import Principal, ProvisionRequest
from workforce_core.services.provisioning import OrphanedIdentity, ProvisioningService

router = APIRouter(prefix="/v1/users", tags=["users"])


class ProvisionResponse(BaseModel):
    id: str
    message: str


class ActiveUpdate(BaseModel):
    is_active: bool = Field(alias="isActive")


@router.post(
    "",
    response_model=ProvisionResponse,
    status_code=HTTP_201_CREATED,
    dependencies=[Depends(require_roles("agent"))],
)
async def provision_user(
    body: ProvisionRequest,
    notify: bool = False,
    caller: Caller = Depends(get_caller),
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> ProvisionResponse:
    request = body
    if not caller.is_admin:
        # Agents onboard their own employees only.
        if body.role != "employee":
            raise HTTPException(status_code=HTTP_403_FORBIDDEN, detail="Agents may only create employees")
        request = body.model_copy(update={"agent_id": caller.subject})

    result = await provisioning.provision_user(request, notify=notify)
    principal_id = unwrap(result)
    return ProvisionResponse(id=principal_id, message=result.message)


@router.get(
    "/agents",
    response_model=list[Principal],
    dependencies=[Depends(require_roles("agent"))],
)
async def list_agents(
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> list[Principal]:
    return unwrap(await provisioning.list_agents())


@router.get("/agents/{agent_id}/employees", response_model=list[Principal])
async def list_agent_employees(
    agent_id: str,
    caller: Caller = Depends(require_roles("agent")),
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> list[Principal]:
    if not caller.is_admin and caller.subject != agent_id:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="Agent not found")
    return unwrap(await provisioning.list_employees_by_agent(agent_id))


@router.get("", response_model=list[Principal], dependencies=[Depends(require_roles())])
async def list_users(
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> list[Principal]:
    return unwrap(await provisioning.list_principals())


@router.get(
    "/orphans",
    response_model=list[OrphanedIdentity],
    dependencies=[Depends(require_roles())],
)
async def list_orphans(
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> list[OrphanedIdentity]:
    return unwrap(await provisioning.list_orphaned_identities())


@router.delete("/orphans/{principal_id}", dependencies=[Depends(require_roles())])
async def remove_orphan(
    principal_id: str,
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> dict[str, str]:
    removed = unwrap(await provisioning.remove_orphaned_identity(principal_id))
    return {"id": removed, "status": "removed"}


@router.get("/{principal_id}", response_model=Principal)
async def get_user(
    principal_id: str,
    caller: Caller = Depends(get_caller),
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> Principal:
    principal = unwrap(await provisioning.get_principal(principal_id))
    visible = (
        caller.is_admin
        or caller.subject == principal.id
        or (caller.role == "agent" and principal.agent_id == caller.subject)
    )
    if not visible:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail="User not found")
    return principal


@router.patch(
    "/{principal_id}/active",
    response_model=Principal,
    dependencies=[Depends(require_roles())],
)
async def set_active(
    principal_id: str,
    body: ActiveUpdate,
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> Principal:
    return unwrap(await provisioning.set_active(principal_id, body.is_active))


@router.post("/{principal_id}/welcome", dependencies=[Depends(require_roles())])
async def send_welcome(
    principal_id: str,
    provisioning: ProvisioningService = Depends(provisioning_dep),
) -> dict[str, Any]:
    principal = unwrap(await provisioning.get_principal(principal_id))
    result = await provisioning.notify_welcome(
        principal.id, name=principal.name, role=principal.role
    )
    return {"notification_id": unwrap(result), "message": result.message}


# --- Module Notes -----------------------------------------------------------
# `require_roles()` with no roles admits admins only (admins bypass every role check).
