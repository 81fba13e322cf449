"""
tests.test_provisioning

Provisioning saga, lookups, activation, sign-in and orphan reconciliation.
"""

from __future__ import annotations

import pytest
from conftest import FaultyDocumentStore, FaultyIdentityStore

from workforce_core.errors import ErrorKind
from workforce_core.services.provisioning import ProvisioningService
from workforce_core.stores.base import COLLECTION_USERS, Timestamp, notifications_path, where


@pytest.mark.asyncio
async def test_provisioned_profile_matches_input(provisioning, identity_store, new_user) -> None:
    r = await provisioning.provision_user(new_user(phone="+15551234567", skills=["wiring", "solar"]))
    assert r.success, r.message
    assert r.message == "User Ana Field created successfully!"

    got = await provisioning.get_principal(r.data)
    assert got.success
    p = got.data
    assert p.id == r.data
    assert (p.name, p.email, p.role) == ("Ana Field", "ana@example.com", "employee")
    assert p.phone == "+15551234567"
    assert p.skills == ["wiring", "solar"]
    assert p.agent_id is None
    assert p.is_active is True

    account = await identity_store.get_account(r.data)
    assert account.claims == {"role": "employee"}
    assert account.disabled is False


@pytest.mark.asyncio
async def test_duplicate_email_rejected_without_second_write(
    identity_store, document_store, settings, new_user
) -> None:
    docs = FaultyDocumentStore(document_store)
    service = ProvisioningService(identity=identity_store, documents=docs, settings=settings)

    first = await service.provision_user(new_user(email="dup@x.com"))
    assert first.success
    writes = docs.writes_to(COLLECTION_USERS)

    second = await service.provision_user(new_user(name="Someone Else", email="dup@x.com"))
    assert not second.success
    assert second.error == ErrorKind.duplicate_email
    assert second.message == "An account with this email already exists."
    assert docs.writes_to(COLLECTION_USERS) == writes

    profiles = await document_store.query(COLLECTION_USERS, [where("email", "==", "dup@x.com")])
    assert [s.id for s in profiles] == [first.data]


@pytest.mark.asyncio
async def test_optional_fields_are_omitted_not_nulled(provisioning, document_store, new_user) -> None:
    r = await provisioning.provision_user(new_user(phone="", skills=[" ", ""]))
    assert r.success

    snap = await document_store.get(COLLECTION_USERS, r.data)
    for key in ("phone", "skills", "agentId"):
        assert key not in snap.data
    assert snap.data["isActive"] is True
    assert isinstance(snap.data["createdAt"], Timestamp)


@pytest.mark.asyncio
async def test_agent_id_is_dropped_for_non_employees(provisioning, document_store, new_user) -> None:
    r = await provisioning.provision_user(new_user(role="admin", agentId="does-not-matter"))
    assert r.success
    snap = await document_store.get(COLLECTION_USERS, r.data)
    assert "agentId" not in snap.data


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("overrides", "kind"),
    [
        ({"name": "   "}, ErrorKind.validation_error),
        ({"role": "supervisor"}, ErrorKind.validation_error),
        ({"email": "not-an-email"}, ErrorKind.invalid_email),
        ({"password": "123"}, ErrorKind.weak_password),
        ({"phone": "555-1234"}, ErrorKind.validation_error),
    ],
)
async def test_invalid_input_creates_nothing(
    provisioning, identity_store, document_store, new_user, overrides, kind
) -> None:
    r = await provisioning.provision_user(new_user(**overrides))
    assert not r.success
    assert r.error == kind
    assert await identity_store.list_accounts() == []
    assert await document_store.query(COLLECTION_USERS) == []


@pytest.mark.asyncio
async def test_weak_password_message(provisioning, new_user) -> None:
    r = await provisioning.provision_user(new_user(password="abc"))
    assert r.message == "Password is too weak. Must be at least 6 characters."


@pytest.mark.asyncio
async def test_employee_agent_reference_is_validated(provisioning, identity_store, document_store, new_user) -> None:
    missing = await provisioning.provision_user(new_user(agentId="no-such-agent"))
    assert missing.error == ErrorKind.validation_error
    assert await identity_store.list_accounts() == []

    agent = await provisioning.provision_user(new_user(name="Agent A", email="agent@example.com", role="agent"))
    assert agent.success
    employee = await provisioning.provision_user(new_user(agentId=agent.data))
    assert employee.success
    snap = await document_store.get(COLLECTION_USERS, employee.data)
    assert snap.data["agentId"] == agent.data


@pytest.mark.asyncio
async def test_inactive_agent_is_rejected(provisioning, new_user) -> None:
    agent = await provisioning.provision_user(
        new_user(name="Agent B", email="agentb@example.com", role="agent", isActive=False)
    )
    assert agent.success
    r = await provisioning.provision_user(new_user(agentId=agent.data))
    assert r.error == ErrorKind.validation_error
    assert "not active" in r.message


@pytest.mark.asyncio
async def test_agent_reference_check_can_be_disabled(identity_store, document_store, settings, new_user) -> None:
    lenient = settings.model_copy(update={"validate_agent_reference": False})
    service = ProvisioningService(identity=identity_store, documents=document_store, settings=lenient)
    r = await service.provision_user(new_user(agentId="dangling"))
    assert r.success


@pytest.mark.asyncio
async def test_identity_outage_before_any_write(identity_store, document_store, settings, new_user) -> None:
    ident = FaultyIdentityStore(identity_store, fail={"create_account"})
    service = ProvisioningService(identity=ident, documents=document_store, settings=settings)
    r = await service.provision_user(new_user())
    assert r.error == ErrorKind.dependency_unavailable
    assert r.data is None
    assert await document_store.query(COLLECTION_USERS) == []


@pytest.mark.asyncio
async def test_profile_write_failure_deletes_identity(identity_store, document_store, settings, new_user) -> None:
    docs = FaultyDocumentStore(document_store, fail={"put": COLLECTION_USERS})
    service = ProvisioningService(identity=identity_store, documents=docs, settings=settings)

    r = await service.provision_user(new_user())
    assert not r.success
    assert r.error == ErrorKind.dependency_unavailable
    assert r.details["step"] == "write_profile"
    assert r.details["rolled_back"] is True
    assert await identity_store.list_accounts() == []


@pytest.mark.asyncio
async def test_claims_failure_unwinds_profile_and_identity(
    identity_store, document_store, settings, new_user
) -> None:
    ident = FaultyIdentityStore(identity_store, fail={"set_claims"})
    service = ProvisioningService(identity=ident, documents=document_store, settings=settings)

    r = await service.provision_user(new_user())
    assert not r.success
    assert r.details["step"] == "set_claims"
    assert r.details["rolled_back"] is True
    assert await identity_store.list_accounts() == []

    (profile,) = await document_store.query(COLLECTION_USERS)
    assert profile.data["isActive"] is False


@pytest.mark.asyncio
async def test_failed_compensation_reports_orphan(
    provisioning, identity_store, document_store, settings, new_user
) -> None:
    ident = FaultyIdentityStore(identity_store, fail={"set_claims", "delete_account"})
    service = ProvisioningService(identity=ident, documents=document_store, settings=settings)

    r = await service.provision_user(new_user())
    assert r.error == ErrorKind.partial_failure
    orphan_id = r.data
    assert orphan_id
    assert r.details["unreverted"] == ["create_account"]
    assert r.details["cause"] == ErrorKind.dependency_unavailable.value

    orphans = await provisioning.list_orphaned_identities()
    assert orphans.success
    assert [(o.id, o.missing) for o in orphans.data] == [(orphan_id, ["claims"])]

    removed = await provisioning.remove_orphaned_identity(orphan_id)
    assert removed.success
    assert await identity_store.get_account(orphan_id) is None
    assert (await provisioning.list_orphaned_identities()).data == []


@pytest.mark.asyncio
async def test_compensation_disabled_leaves_identity_for_reconciliation(
    provisioning, identity_store, document_store, settings, new_user
) -> None:
    no_undo = settings.model_copy(update={"compensate_failed_provisioning": False})
    docs = FaultyDocumentStore(document_store, fail={"put": COLLECTION_USERS})
    service = ProvisioningService(identity=identity_store, documents=docs, settings=no_undo)

    r = await service.provision_user(new_user())
    assert r.error == ErrorKind.partial_failure
    assert r.details["unreverted"] == ["create_account"]

    orphans = (await provisioning.list_orphaned_identities()).data
    assert [(o.id, o.missing) for o in orphans] == [(r.data, ["profile", "claims"])]


@pytest.mark.asyncio
async def test_fully_provisioned_identity_is_not_an_orphan(provisioning, new_user) -> None:
    r = await provisioning.provision_user(new_user())
    assert (await provisioning.list_orphaned_identities()).data == []

    refused = await provisioning.remove_orphaned_identity(r.data)
    assert refused.error == ErrorKind.state_conflict
    assert (await provisioning.remove_orphaned_identity("nobody")).error == ErrorKind.not_found


@pytest.mark.asyncio
async def test_list_agents_returns_active_agents_only(provisioning, new_user) -> None:
    active = await provisioning.provision_user(new_user(name="A1", email="a1@example.com", role="agent"))
    await provisioning.provision_user(
        new_user(name="A2", email="a2@example.com", role="agent", isActive=False)
    )
    await provisioning.provision_user(new_user())

    r = await provisioning.list_agents()
    assert r.success
    assert [a.id for a in r.data] == [active.data]


@pytest.mark.asyncio
async def test_welcome_notification_is_appended(provisioning, document_store, new_user) -> None:
    r = await provisioning.provision_user(new_user(), notify=True)
    assert r.success

    (note,) = await document_store.query(notifications_path(r.data))
    assert note.data["type"] == "welcome"
    assert note.data["title"] == "Welcome to the Platform!"
    assert note.data["message"] == "Hello Ana Field! Your employee account has been created successfully."
    assert note.data["read"] is False
    assert isinstance(note.data["createdAt"], Timestamp)


@pytest.mark.asyncio
async def test_welcome_failure_does_not_fail_provisioning(
    identity_store, document_store, settings, new_user
) -> None:
    docs = FaultyDocumentStore(document_store, fail={"append": "users/*/notifications"})
    service = ProvisioningService(identity=identity_store, documents=docs, settings=settings)
    r = await service.provision_user(new_user(), notify=True)
    assert r.success
    assert "could not be sent" in r.message


@pytest.mark.asyncio
async def test_set_active_keeps_identity_and_profile_in_step(provisioning, identity_store, new_user) -> None:
    r = await provisioning.provision_user(new_user())

    off = await provisioning.set_active(r.data, False)
    assert off.success
    assert off.data.is_active is False
    assert (await identity_store.get_account(r.data)).disabled is True
    assert (await provisioning.sign_in("ana@example.com", "s3cret-pass")).error == ErrorKind.account_disabled

    on = await provisioning.set_active(r.data, True)
    assert on.success
    assert (await provisioning.sign_in("ana@example.com", "s3cret-pass")).success

    assert (await provisioning.set_active("nobody", True)).error == ErrorKind.not_found


@pytest.mark.asyncio
async def test_set_active_reverts_identity_when_profile_write_fails(
    provisioning, identity_store, document_store, settings, new_user
) -> None:
    r = await provisioning.provision_user(new_user())
    docs = FaultyDocumentStore(document_store, fail={"update": COLLECTION_USERS})
    service = ProvisioningService(identity=identity_store, documents=docs, settings=settings)

    res = await service.set_active(r.data, False)
    assert res.error == ErrorKind.dependency_unavailable
    assert (await identity_store.get_account(r.data)).disabled is False


@pytest.mark.asyncio
async def test_sign_in(provisioning, new_user) -> None:
    r = await provisioning.provision_user(new_user())

    ok = await provisioning.sign_in("ANA@example.com", "s3cret-pass")
    assert ok.success
    assert ok.data.id == r.data
    assert ok.details["claims"] == {"role": "employee"}

    assert (await provisioning.sign_in("ana@example.com", "wrong-pass")).error == ErrorKind.invalid_credentials
    assert (await provisioning.sign_in("ghost@example.com", "s3cret-pass")).error == ErrorKind.invalid_credentials


@pytest.mark.asyncio
async def test_sign_in_refuses_half_provisioned_accounts(provisioning, identity_store, document_store) -> None:
    no_profile = await identity_store.create_account(
        email="np@example.com", password="s3cret-pass", display_name="No Profile"
    )
    await identity_store.set_claims(no_profile, {"role": "agent"})
    assert (await provisioning.sign_in("np@example.com", "s3cret-pass")).error == ErrorKind.not_found

    no_claims = await identity_store.create_account(
        email="nc@example.com", password="s3cret-pass", display_name="No Claims"
    )
    now = Timestamp.now()
    await document_store.put(
        COLLECTION_USERS,
        no_claims,
        {"name": "No Claims", "email": "nc@example.com", "role": "agent", "isActive": True,
         "createdAt": now, "updatedAt": now},
    )
    assert (await provisioning.sign_in("nc@example.com", "s3cret-pass")).error == ErrorKind.partial_failure


@pytest.mark.asyncio
async def test_identity_survives_when_profile_cannot_be_deactivated(
    provisioning, identity_store, document_store, settings, new_user
) -> None:
    ident = FaultyIdentityStore(identity_store, fail={"set_claims"})
    docs = FaultyDocumentStore(document_store, fail={"update": COLLECTION_USERS})
    service = ProvisioningService(identity=ident, documents=docs, settings=settings)

    r = await service.provision_user(new_user(name="Agent C", email="agentc@example.com", role="agent"))
    assert r.error == ErrorKind.partial_failure
    assert r.details["unreverted"] == ["write_profile", "create_account"]
    assert await identity_store.get_account(r.data) is not None

    orphans = (await provisioning.list_orphaned_identities()).data
    assert [(o.id, o.missing) for o in orphans] == [(r.data, ["claims"])]

    assert (await provisioning.remove_orphaned_identity(r.data)).success
    assert await identity_store.get_account(r.data) is None
    assert (await provisioning.list_agents()).data == []


@pytest.mark.asyncio
async def test_profiles_without_is_active_count_as_active(provisioning, document_store) -> None:
    await document_store.put(COLLECTION_USERS, "legacy-agent", {"name": "Old", "email": "old@example.com", "role": "agent"})
    r = await provisioning.list_agents()
    assert [a.id for a in r.data] == ["legacy-agent"]
    assert r.data[0].is_active is True


@pytest.mark.asyncio
async def test_list_employees_by_agent(provisioning, new_user) -> None:
    agent = await provisioning.provision_user(new_user(name="Agent D", email="agentd@example.com", role="agent"))
    other = await provisioning.provision_user(new_user(name="Agent E", email="agente@example.com", role="agent"))
    mine = await provisioning.provision_user(new_user(email="e1@example.com", agentId=agent.data))
    gone = await provisioning.provision_user(new_user(email="e2@example.com", agentId=agent.data))
    await provisioning.provision_user(new_user(email="e3@example.com", agentId=other.data))
    await provisioning.set_active(gone.data, False)

    r = await provisioning.list_employees_by_agent(agent.data)
    assert r.success
    assert [p.id for p in r.data] == [mine.data]
    assert (await provisioning.list_employees_by_agent("nobody")).data == []


@pytest.mark.asyncio
async def test_list_principals_includes_inactive_newest_first(provisioning, new_user) -> None:
    first = await provisioning.provision_user(new_user(email="p1@example.com"))
    second = await provisioning.provision_user(new_user(email="p2@example.com", isActive=False))

    r = await provisioning.list_principals()
    assert [p.id for p in r.data] == [second.data, first.data]
