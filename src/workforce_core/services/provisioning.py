"""
workforce_core.services.provisioning

Identity provisioning service (identity store + profile document + claims).

Responsibilities:
- Provision a principal as a saga: identity account, profile document, role claim,
  with compensations when a later step fails.
- Classify every failure into the error taxonomy; partial failures carry the orphaned
  identity id so operators can reconcile.
- Lookups (agents, single principal), activation toggling, sign-in checks.
- Reconciliation: find and remove identities left behind by half-finished provisioning.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ValidationError

from workforce_core.domain.principals import Principal, ProvisionRequest, profile_document
from workforce_core.errors import CoreError, ErrorKind, classify
from workforce_core.observability.logging import get_logger
from workforce_core.services.results import OperationResult
from workforce_core.services.saga import Saga, SagaFailed
from workforce_core.settings import Settings
from workforce_core.stores.base import (
    COLLECTION_USERS,
    DocumentStore,
    IdentityStore,
    Predicate,
    Timestamp,
    notifications_path,
    where,
)

log = get_logger(__name__)


class OrphanedIdentity(BaseModel):
    id: str
    email: str
    display_name: str
    disabled: bool
    # Which half of provisioning is missing: "profile" and/or "claims".
    missing: list[str]


def _validation_message(e: ValidationError) -> str:
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return "Invalid user data: " + "; ".join(parts)


class ProvisioningService:
    def __init__(
        self,
        *,
        identity: IdentityStore,
        documents: DocumentStore,
        settings: Settings,
    ) -> None:
        self._identity = identity
        self._documents = documents
        self._settings = settings

    async def provision_user(
        self,
        data: ProvisionRequest | Mapping[str, Any],
        *,
        notify: bool = False,
    ) -> OperationResult[str]:
        try:
            request = (
                data if isinstance(data, ProvisionRequest) else ProvisionRequest.model_validate(data)
            )
        except ValidationError as e:
            return OperationResult.fail(ErrorKind.validation_error, _validation_message(e))

        log.info("provision_started", role=request.role)

        if self._settings.validate_agent_reference and request.supervising_agent_id:
            rejected = await self._check_supervising_agent(request.supervising_agent_id)
            if rejected is not None:
                return rejected

        saga = self._provisioning_saga(request)
        try:
            ctx = await saga.run()
        except SagaFailed as sf:
            return self._provision_failure(request, saga, sf)

        principal_id: str = ctx["create_account"]
        log.info("provision_completed", principal_id=principal_id, role=request.role)

        message = f"User {request.name} created successfully!"
        if notify:
            welcome = await self.notify_welcome(principal_id, name=request.name, role=request.role)
            if not welcome.success:
                message += " The welcome notification could not be sent."
        return OperationResult.ok(principal_id, message)

    def _provisioning_saga(self, request: ProvisionRequest) -> Saga:
        identity, documents = self._identity, self._documents

        async def create_account(_: dict[str, Any]) -> str:
            return await identity.create_account(
                email=request.email,
                password=request.password,
                display_name=request.name,
                phone=request.phone,
                disabled=not request.is_active,
            )

        async def delete_account(_: dict[str, Any], principal_id: str) -> None:
            await identity.delete_account(principal_id)

        async def write_profile(ctx: dict[str, Any]) -> None:
            doc = profile_document(request, now=Timestamp.now())
            await documents.put(COLLECTION_USERS, ctx["create_account"], doc)

        async def deactivate_profile(ctx: dict[str, Any], _: Any) -> None:
            await documents.update(
                COLLECTION_USERS,
                ctx["create_account"],
                {"isActive": False, "updatedAt": Timestamp.now()},
            )

        async def set_claims(ctx: dict[str, Any]) -> None:
            await identity.set_claims(ctx["create_account"], {"role": request.role})

        return (
            Saga(
                name="provision_user",
                compensate=self._settings.compensate_failed_provisioning,
                # A profile that could not be deactivated keeps its identity account, so
                # list_orphaned_identities still reports it.
                halt_on_compensation_failure=True,
            )
            .step("create_account", create_account, delete_account)
            .step("write_profile", write_profile, deactivate_profile)
            .step("set_claims", set_claims)
        )

    def _provision_failure(
        self, request: ProvisionRequest, saga: Saga, sf: SagaFailed
    ) -> OperationResult[str]:
        kind = classify(sf.cause)
        cause = sf.cause.message if isinstance(sf.cause, CoreError) else str(sf.cause)

        if sf.step == "create_account":
            # Step of record: nothing else was written.
            log.warning("provision_rejected", role=request.role, error=kind.value)
            if kind == ErrorKind.unknown:
                log.error("provision_unexpected_error", error=cause)
                cause = "Failed to create user. Please try again."
            return OperationResult.fail(kind, cause)

        principal_id: str = saga.context["create_account"]
        if sf.fully_compensated:
            log.warning(
                "provision_compensated",
                principal_id=principal_id,
                step=sf.step,
                error=kind.value,
            )
            return OperationResult.fail(
                kind,
                f"Failed to create user at step '{sf.step}': {cause}. "
                "The identity account was rolled back.",
                step=sf.step,
                rolled_back=True,
            )

        log.error(
            "provision_partial_failure",
            principal_id=principal_id,
            step=sf.step,
            error=kind.value,
            unreverted=sf.unreverted,
        )
        return OperationResult.fail(
            ErrorKind.partial_failure,
            f"Identity account {principal_id} was created but provisioning failed at step "
            f"'{sf.step}': {cause}. The account must be reconciled.",
            data=principal_id,
            step=sf.step,
            cause=kind.value,
            unreverted=list(sf.unreverted),
        )

    async def _check_supervising_agent(self, agent_id: str) -> OperationResult[str] | None:
        try:
            snap = await self._documents.get(COLLECTION_USERS, agent_id)
        except Exception as e:
            return OperationResult.fail(classify(e), f"Could not verify supervising agent: {e}")
        if snap is None or snap.get("role") != "agent":
            return OperationResult.fail(
                ErrorKind.validation_error, f"Supervising agent {agent_id} does not exist."
            )
        if not snap.get("isActive", True):
            return OperationResult.fail(
                ErrorKind.validation_error, f"Supervising agent {agent_id} is not active."
            )
        return None

    async def list_agents(self) -> OperationResult[list[Principal]]:
        result = await self._active_profiles([where("role", "==", "agent")])
        if result.success:
            return OperationResult.ok(result.data, f"{len(result.data)} active agents")
        return result

    async def list_employees_by_agent(self, agent_id: str) -> OperationResult[list[Principal]]:
        result = await self._active_profiles(
            [where("role", "==", "employee"), where("agentId", "==", agent_id)]
        )
        if result.success:
            return OperationResult.ok(result.data, f"{len(result.data)} active employees")
        return result

    async def list_principals(self) -> OperationResult[list[Principal]]:
        """
        Every profile, active or not, newest first. Profiles without createdAt read as now.
        """

        try:
            snaps = await self._documents.query(COLLECTION_USERS)
            principals = [Principal.from_snapshot(s) for s in snaps]
        except Exception as e:
            log.error("list_principals_failed", error=str(e))
            return OperationResult.fail(classify(e), "Failed to load users", data=[])
        principals.sort(key=lambda p: p.created_at, reverse=True)
        return OperationResult.ok(principals, f"{len(principals)} users")

    async def _active_profiles(self, predicates: list[Predicate]) -> OperationResult[list[Principal]]:
        # isActive is filtered after the read model applies its default (missing means active).
        try:
            snaps = await self._documents.query(COLLECTION_USERS, predicates)
            principals = [Principal.from_snapshot(s) for s in snaps]
        except Exception as e:
            log.error("list_profiles_failed", error=str(e))
            return OperationResult.fail(classify(e), "Failed to load users", data=[])
        return OperationResult.ok([p for p in principals if p.is_active])

    async def notify_welcome(self, principal_id: str, *, name: str, role: str) -> OperationResult[str]:
        """
        Appends one welcome notification. Not idempotent: call once per provisioning.
        """

        notification = {
            "type": "welcome",
            "title": self._settings.welcome_title,
            "message": f"Hello {name}! Your {role} account has been created successfully.",
            "read": False,
            "createdAt": Timestamp.now(),
        }
        try:
            notification_id = await self._documents.append(
                notifications_path(principal_id), notification
            )
        except Exception as e:
            log.error("welcome_notification_failed", principal_id=principal_id, error=str(e))
            return OperationResult.fail(classify(e), f"Failed to send welcome notification: {e}")
        log.info("welcome_notification_sent", principal_id=principal_id)
        return OperationResult.ok(notification_id, "Welcome notification sent")

    async def get_principal(self, principal_id: str) -> OperationResult[Principal]:
        try:
            snap = await self._documents.get(COLLECTION_USERS, principal_id)
            if snap is None:
                return OperationResult.fail(ErrorKind.not_found, "User not found")
            return OperationResult.ok(Principal.from_snapshot(snap))
        except Exception as e:
            return OperationResult.fail(classify(e), f"Failed to load user: {e}")

    async def set_active(self, principal_id: str, active: bool) -> OperationResult[Principal]:
        """
        Keeps the identity `disabled` flag and the profile `isActive` field in agreement.
        The identity flag is written first (it gates sign-in) and reverted if the profile
        write fails.
        """

        try:
            account = await self._identity.get_account(principal_id)
            snap = await self._documents.get(COLLECTION_USERS, principal_id)
        except Exception as e:
            return OperationResult.fail(classify(e), f"Failed to load user: {e}")
        if account is None or snap is None:
            return OperationResult.fail(ErrorKind.not_found, "User not found")

        try:
            await self._identity.set_disabled(principal_id, not active)
        except Exception as e:
            return OperationResult.fail(classify(e), f"Failed to update account: {e}")

        try:
            updated = await self._documents.update(
                COLLECTION_USERS,
                principal_id,
                {"isActive": active, "updatedAt": Timestamp.now()},
            )
        except Exception as e:
            kind = classify(e)
            try:
                await self._identity.set_disabled(principal_id, account.disabled)
            except Exception as revert_err:
                log.error(
                    "set_active_revert_failed",
                    principal_id=principal_id,
                    error=str(revert_err),
                )
                return OperationResult.fail(
                    ErrorKind.partial_failure,
                    f"Account {principal_id} is {'enabled' if active else 'disabled'} but its "
                    f"profile could not be updated: {e}",
                    data=None,
                    cause=kind.value,
                )
            return OperationResult.fail(kind, f"Failed to update user profile: {e}")

        log.info("principal_active_changed", principal_id=principal_id, active=active)
        return OperationResult.ok(Principal.from_snapshot(updated), "User updated")

    async def sign_in(self, email: str, password: str) -> OperationResult[Principal]:
        try:
            account = await self._identity.authenticate(email, password)
            snap = await self._documents.get(COLLECTION_USERS, account.id)
        except Exception as e:
            kind = classify(e)
            message = e.message if isinstance(e, CoreError) else "Sign-in failed"
            return OperationResult.fail(kind, message)

        if account.disabled:
            return OperationResult.fail(ErrorKind.account_disabled, "Account is deactivated")
        if snap is None:
            return OperationResult.fail(ErrorKind.not_found, "User data not found")
        principal = Principal.from_snapshot(snap)
        if not principal.is_active:
            return OperationResult.fail(ErrorKind.account_disabled, "Account is deactivated")
        if "role" not in account.claims:
            return OperationResult.fail(
                ErrorKind.partial_failure,
                "Account provisioning is incomplete. Contact an administrator.",
            )
        return OperationResult.ok(principal, "Signed in", claims=dict(account.claims))

    async def list_orphaned_identities(self) -> OperationResult[list[OrphanedIdentity]]:
        """
        Identity accounts with no profile document or no role claim. An account that is
        being provisioned right now also shows up here until its last step lands.
        """

        try:
            accounts = await self._identity.list_accounts()
            profile_ids = {s.id for s in await self._documents.query(COLLECTION_USERS)}
        except Exception as e:
            log.error("list_orphans_failed", error=str(e))
            return OperationResult.fail(classify(e), "Failed to list orphaned identities", data=[])

        orphans: list[OrphanedIdentity] = []
        for account in accounts:
            missing = []
            if account.id not in profile_ids:
                missing.append("profile")
            if "role" not in account.claims:
                missing.append("claims")
            if missing:
                orphans.append(
                    OrphanedIdentity(
                        id=account.id,
                        email=account.email,
                        display_name=account.display_name,
                        disabled=account.disabled,
                        missing=missing,
                    )
                )
        return OperationResult.ok(orphans, f"{len(orphans)} orphaned identities")

    async def remove_orphaned_identity(self, principal_id: str) -> OperationResult[str]:
        try:
            account = await self._identity.get_account(principal_id)
            if account is None:
                return OperationResult.fail(ErrorKind.not_found, "Identity account not found")
            snap = await self._documents.get(COLLECTION_USERS, principal_id)
            if snap is not None and "role" in account.claims:
                return OperationResult.fail(
                    ErrorKind.state_conflict,
                    "Identity account is fully provisioned; deactivate it instead.",
                )
            await self._identity.delete_account(principal_id)
            if snap is not None:
                await self._documents.update(
                    COLLECTION_USERS,
                    principal_id,
                    {"isActive": False, "updatedAt": Timestamp.now()},
                )
        except Exception as e:
            log.error("remove_orphan_failed", principal_id=principal_id, error=str(e))
            return OperationResult.fail(classify(e), f"Failed to remove orphaned identity: {e}")
        log.info("orphan_removed", principal_id=principal_id)
        return OperationResult.ok(principal_id, "Orphaned identity removed")


# --- Module Notes -----------------------------------------------------------
# No operation here raises past its boundary; callers branch on OperationResult.error.
