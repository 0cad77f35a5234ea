from datetime import timedelta

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from app.core.database import UnitOfWork
from app.core.exceptions import Conflict, Expired, Forbidden, InvalidState, NotFound
from app.core.timeutils import utcnow
from app.models import Invitation, Permission
from app.models.enums import AccessLevel, EntityType, InvitationStatus
from app.services.invitations import InvitationManager


@pytest.fixture
def manager(db):
    return InvitationManager(UnitOfWork(db))


async def _permissions_for(db, user_id):
    result = await db.execute(select(Permission).where(Permission.user_id == user_id))
    return result.scalars().all()


async def _stored_pending(db, entity_id, email="bob@example.com"):
    result = await db.execute(
        select(func.count(Invitation.id)).where(
            Invitation.entity_type == EntityType.NOTE,
            Invitation.entity_id == entity_id,
            Invitation.invitee_email == email,
            Invitation.status == InvitationStatus.PENDING,
        )
    )
    return result.scalar_one()


def _seeded_invitation(inviter_id, entity_id, token, status=InvitationStatus.PENDING, email="bob@example.com"):
    return Invitation(
        inviter_id=inviter_id,
        invitee_email=email,
        entity_type=EntityType.NOTE,
        entity_id=entity_id,
        access_level=AccessLevel.VIEW,
        token=token,
        status=status,
        expires_at=utcnow() + timedelta(days=1),
        created_at=utcnow(),
    )


# Service level
#
# A failed transaction rolls back the shared session and expires every loaded
# row, so ids are read up front.

async def test_create_sets_pending_status_token_and_thirty_day_expiry(manager, owner, create_note):
    note = await create_note(owner)
    before = utcnow()

    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "Bob@Example.com", AccessLevel.VIEW)

    assert invitation.id is not None
    assert invitation.status == InvitationStatus.PENDING
    assert invitation.invitee_email == "bob@example.com"
    assert len(invitation.token) == 64
    assert before + timedelta(days=30) <= invitation.expires_at <= utcnow() + timedelta(days=30)


async def test_create_checks_entity_then_ownership(manager, owner, bob, create_note):
    note = await create_note(owner)
    owner_id, bob_id, note_id = owner.id, bob.id, note.id

    with pytest.raises(NotFound):
        await manager.create(owner_id, EntityType.NOTE, 9999, "bob@example.com", AccessLevel.VIEW)
    with pytest.raises(Forbidden):
        await manager.create(bob_id, EntityType.NOTE, note_id, "carol@example.com", AccessLevel.VIEW)


async def test_create_rejects_invitee_who_already_has_access(manager, db, owner, bob, create_note):
    note = await create_note(owner)
    db.add(Permission(user_id=bob.id, entity_type=EntityType.NOTE, entity_id=note.id, access_level=AccessLevel.VIEW))
    await db.commit()

    with pytest.raises(Conflict):
        await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.EDIT)


async def test_second_pending_invitation_for_same_entity_and_email_conflicts(
    manager, db, owner, create_note, create_folder
):
    note = await create_note(owner)
    folder = await create_folder(owner)
    owner_id, note_id, folder_id = owner.id, note.id, folder.id
    await manager.create(owner_id, EntityType.NOTE, note_id, "bob@example.com", AccessLevel.VIEW)

    with pytest.raises(Conflict):
        await manager.create(owner_id, EntityType.NOTE, note_id, "BOB@example.com", AccessLevel.EDIT)
    assert await _stored_pending(db, note_id) == 1

    # A different entity is a different tuple
    await manager.create(owner_id, EntityType.FOLDER, folder_id, "bob@example.com", AccessLevel.VIEW)


async def test_accept_marks_accepted_and_creates_permission(manager, db, owner, bob, create_note):
    note = await create_note(owner)
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.EDIT)

    accepted, permission = await manager.accept(invitation.id, bob.id)

    assert accepted.status == InvitationStatus.ACCEPTED
    assert permission.user_id == bob.id
    assert permission.entity_type == EntityType.NOTE
    assert permission.entity_id == note.id
    assert permission.access_level == AccessLevel.EDIT
    assert len(await _permissions_for(db, bob.id)) == 1


async def test_accept_checks_addressee_before_status(manager, owner, bob, carol, create_note):
    note = await create_note(owner)
    bob_id, carol_id = bob.id, carol.id
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)
    invitation_id = invitation.id
    await manager.decline(invitation_id, bob_id)

    with pytest.raises(Forbidden):
        await manager.accept(invitation_id, carol_id)
    with pytest.raises(InvalidState, match="already been declined"):
        await manager.accept(invitation_id, bob_id)


async def test_terminal_status_never_changes(manager, db, owner, bob, create_note):
    note = await create_note(owner)
    bob_id = bob.id
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)
    invitation_id = invitation.id
    await manager.accept(invitation_id, bob_id)

    with pytest.raises(InvalidState, match="already been accepted"):
        await manager.accept(invitation_id, bob_id)
    with pytest.raises(InvalidState, match="already been accepted"):
        await manager.decline(invitation_id, bob_id)

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.ACCEPTED
    assert len(await _permissions_for(db, bob_id)) == 1


async def test_concurrent_accepts_yield_one_permission(session_factory, db, owner, bob, create_note):
    note = await create_note(owner)
    bob_id = bob.id
    invitation = await InvitationManager(UnitOfWork(db)).create(
        owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW
    )
    invitation_id = invitation.id

    async with session_factory() as first, session_factory() as second:
        # Both requests have read the invitation while it was still pending
        assert (await first.get(Invitation, invitation_id)).status == InvitationStatus.PENDING
        assert (await second.get(Invitation, invitation_id)).status == InvitationStatus.PENDING

        await InvitationManager(UnitOfWork(first)).accept(invitation_id, bob_id)
        with pytest.raises(InvalidState, match="already been accepted"):
            await InvitationManager(UnitOfWork(second)).accept(invitation_id, bob_id)

    assert len(await _permissions_for(db, bob_id)) == 1
    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.ACCEPTED


async def test_expired_invitation_cannot_be_accepted_but_stays_pending(db, owner, bob, create_note):
    note = await create_note(owner)
    bob_id = bob.id
    long_ago = utcnow() - timedelta(days=31)
    past_manager = InvitationManager(UnitOfWork(db), clock=lambda: long_ago)
    invitation = await past_manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)

    manager = InvitationManager(UnitOfWork(db))
    with pytest.raises(Expired):
        await manager.accept(invitation.id, bob_id)

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.PENDING
    assert await _permissions_for(db, bob_id) == []
    assert await manager.list_pending("bob@example.com") == []


async def test_reinviting_after_expiry_retires_the_expired_invitation(db, owner, create_note):
    note = await create_note(owner)
    long_ago = utcnow() - timedelta(days=31)
    expired = await InvitationManager(UnitOfWork(db), clock=lambda: long_ago).create(
        owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW
    )

    fresh = await InvitationManager(UnitOfWork(db)).create(
        owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW
    )

    assert fresh.status == InvitationStatus.PENDING
    await db.refresh(expired)
    assert expired.status == InvitationStatus.DECLINED
    assert await _stored_pending(db, note.id) == 1


async def test_store_holds_one_pending_row_per_tuple(db, owner, create_note):
    note = await create_note(owner)
    owner_id, note_id = owner.id, note.id
    db.add(_seeded_invitation(owner_id, note_id, "b" * 64))
    db.add(_seeded_invitation(owner_id, note_id, "c" * 64, status=InvitationStatus.DECLINED))
    await db.commit()

    db.add(_seeded_invitation(owner_id, note_id, "d" * 64))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()

    assert await _stored_pending(db, note_id) == 1


async def test_create_maps_concurrent_pending_insert_to_conflict(manager, db, owner, create_note, monkeypatch):
    note = await create_note(owner)
    owner_id, note_id = owner.id, note.id
    await manager.create(owner_id, EntityType.NOTE, note_id, "bob@example.com", AccessLevel.VIEW)

    # Another writer's pending row is not visible to the up-front check
    async def nothing_pending(*args):
        return None

    monkeypatch.setattr(manager, "_find_pending", nothing_pending)
    with pytest.raises(Conflict):
        await manager.create(owner_id, EntityType.NOTE, note_id, "bob@example.com", AccessLevel.EDIT)
    assert await _stored_pending(db, note_id) == 1


async def test_accept_rolls_back_when_permission_appeared_meanwhile(manager, db, owner, bob, create_note):
    note = await create_note(owner)
    bob_id = bob.id
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)
    db.add(Permission(user_id=bob_id, entity_type=EntityType.NOTE, entity_id=note.id, access_level=AccessLevel.EDIT))
    await db.commit()

    with pytest.raises(Conflict):
        await manager.accept(invitation.id, bob_id)

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.PENDING
    assert len(await _permissions_for(db, bob_id)) == 1


async def test_decline_creates_no_permission(manager, db, owner, bob, create_note):
    note = await create_note(owner)
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)

    declined = await manager.decline(invitation.id, bob.id)

    assert declined.status == InvitationStatus.DECLINED
    assert await _permissions_for(db, bob.id) == []


async def test_list_pending_is_newest_first_and_only_live(db, owner, create_note):
    first_note = await create_note(owner, title="first")
    second_note = await create_note(owner, title="second")
    third_note = await create_note(owner, title="third")
    now = utcnow()

    await InvitationManager(UnitOfWork(db), clock=lambda: now - timedelta(hours=2)).create(
        owner.id, EntityType.NOTE, first_note.id, "bob@example.com", AccessLevel.VIEW
    )
    await InvitationManager(UnitOfWork(db), clock=lambda: now - timedelta(hours=1)).create(
        owner.id, EntityType.NOTE, second_note.id, "bob@example.com", AccessLevel.EDIT
    )
    await InvitationManager(UnitOfWork(db)).create(
        owner.id, EntityType.NOTE, third_note.id, "carol@example.com", AccessLevel.VIEW
    )

    pending = await InvitationManager(UnitOfWork(db)).list_pending("BOB@example.com")

    assert [invitation.entity_id for invitation in pending] == [second_note.id, first_note.id]
    assert pending[0].inviter.email == "owner@example.com"


async def test_get_by_token_only_finds_live_invitations(manager, owner, bob, create_note):
    note = await create_note(owner)
    invitation = await manager.create(owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.VIEW)
    token, invitation_id = invitation.token, invitation.id

    assert (await manager.get_by_token(token)).id == invitation_id

    await manager.decline(invitation_id, bob.id)
    with pytest.raises(NotFound):
        await manager.get_by_token(token)
    with pytest.raises(NotFound):
        await manager.get_by_token("unknown")


# HTTP

def _invite_payload(entity_id, email="bob@example.com", entity_type="note", access_level="view"):
    return {
        "entity_id": entity_id,
        "entity_type": entity_type,
        "invitee_email": email,
        "access_level": access_level,
    }


async def test_invite_accept_flow(client, db, auth_headers, owner, bob, create_note):
    note = await create_note(owner)

    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))
    assert r.status_code == 201
    body = r.json()
    assert body["status"] == "pending"
    assert body["invitee_email"] == "bob@example.com"
    assert "token" not in body
    invitation_id = body["id"]

    r = await client.post(f"/api/v1/invitations/{invitation_id}/accept", headers=auth_headers(bob))
    assert r.status_code == 200
    body = r.json()
    assert body["invitation"] == {"id": invitation_id, "status": "accepted"}
    assert body["permission"]["access_level"] == "view"
    assert body["permission"]["entity_type"] == "note"
    assert body["permission"]["entity_id"] == note.id

    permissions = await _permissions_for(db, bob.id)
    assert [(p.entity_type, p.entity_id, p.access_level) for p in permissions] == [
        (EntityType.NOTE, note.id, AccessLevel.VIEW)
    ]

    r = await client.post(f"/api/v1/invitations/{invitation_id}/accept", headers=auth_headers(bob))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invitation has already been accepted"


async def test_accept_by_someone_else_is_forbidden(client, auth_headers, owner, carol, create_note):
    note = await create_note(owner)
    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))

    r = await client.post(f"/api/v1/invitations/{r.json()['id']}/accept", headers=auth_headers(carol))
    assert r.status_code == 403


async def test_accept_expired_invitation_returns_400(client, db, auth_headers, owner, bob, create_note):
    note = await create_note(owner)
    invitation = Invitation(
        inviter_id=owner.id,
        invitee_email="bob@example.com",
        entity_type=EntityType.NOTE,
        entity_id=note.id,
        access_level=AccessLevel.VIEW,
        token="a" * 64,
        status=InvitationStatus.PENDING,
        expires_at=utcnow() - timedelta(minutes=1),
        created_at=utcnow() - timedelta(days=30, minutes=1),
    )
    db.add(invitation)
    await db.commit()

    r = await client.post(f"/api/v1/invitations/{invitation.id}/accept", headers=auth_headers(bob))
    assert r.status_code == 400
    assert r.json()["detail"] == "Invitation has expired"

    await db.refresh(invitation)
    assert invitation.status == InvitationStatus.PENDING


async def test_duplicate_pending_invitation_returns_409(client, auth_headers, owner, create_note):
    note = await create_note(owner)
    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))
    assert r.status_code == 201

    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))
    assert r.status_code == 409


async def test_create_invitation_error_statuses(client, auth_headers, owner, bob, create_note):
    note = await create_note(owner)

    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(bob))
    assert r.status_code == 403

    r = await client.post("/api/v1/invitations", json=_invite_payload(4242), headers=auth_headers(owner))
    assert r.status_code == 404

    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id))
    assert r.status_code == 401


async def test_create_invitation_validates_fields(client, auth_headers, owner, create_note):
    note = await create_note(owner)

    r = await client.post(
        "/api/v1/invitations",
        json=_invite_payload(note.id, entity_type="notebook", access_level="admin"),
        headers=auth_headers(owner),
    )
    assert r.status_code == 400
    fields = {error["field"] for error in r.json()["errors"]}
    assert fields == {"entity_type", "access_level"}

    r = await client.post("/api/v1/invitations", json={"entity_id": note.id}, headers=auth_headers(owner))
    assert r.status_code == 400

    r = await client.post(
        "/api/v1/invitations", json=_invite_payload(note.id, email="not-an-email"), headers=auth_headers(owner)
    )
    assert r.status_code == 400


async def test_pending_endpoint_lists_invitations_with_inviter(client, auth_headers, owner, bob, create_note):
    note = await create_note(owner)
    await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))

    r = await client.get("/api/v1/invitations/pending", headers=auth_headers(bob))
    assert r.status_code == 200
    [pending] = r.json()
    assert pending["entity_id"] == note.id
    assert pending["inviter"] == {"id": owner.id, "email": "owner@example.com"}
    assert "token" not in pending

    r = await client.get("/api/v1/invitations/pending", headers=auth_headers(owner))
    assert r.json() == []

    r = await client.get("/api/v1/invitations/pending")
    assert r.status_code == 401


async def test_decline_endpoint(client, auth_headers, owner, bob, create_note):
    note = await create_note(owner)
    r = await client.post("/api/v1/invitations", json=_invite_payload(note.id), headers=auth_headers(owner))
    invitation_id = r.json()["id"]

    r = await client.post(f"/api/v1/invitations/{invitation_id}/decline", headers=auth_headers(bob))
    assert r.status_code == 200
    assert r.json()["invitation"]["status"] == "declined"

    r = await client.post(f"/api/v1/invitations/{invitation_id}/decline", headers=auth_headers(bob))
    assert r.status_code == 400

    r = await client.post("/api/v1/invitations/999/decline", headers=auth_headers(bob))
    assert r.status_code == 404


async def test_lookup_by_token_requires_no_authentication(client, db, owner, create_note):
    note = await create_note(owner)
    invitation = await InvitationManager(UnitOfWork(db)).create(
        owner.id, EntityType.NOTE, note.id, "bob@example.com", AccessLevel.EDIT
    )

    r = await client.get(f"/api/v1/invitations/lookup/{invitation.token}")
    assert r.status_code == 200
    assert r.json()["access_level"] == "edit"

    r = await client.get("/api/v1/invitations/lookup/nope")
    assert r.status_code == 404
