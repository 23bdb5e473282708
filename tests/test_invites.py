import threading
from datetime import timedelta

import pytest

from carebase.core.config import settings
from carebase.core.errors import (
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from carebase.core.security import verify_password
from carebase.models import (
    AuditLog,
    GuardianInvite,
    GuardianLink,
    GuardianStatus,
    InviteStatus,
    OrgInvite,
    OrgMember,
    OrgRole,
    OrgStatus,
    Organization,
    User,
)
from carebase.services.invites import GuardianInviteLifecycle, OrgInviteLifecycle
from carebase.utils.timezone import utcnow

from conftest import PASSWORD

NEW_PASSWORD = "Another123!"


@pytest.fixture
def org_invites():
    return OrgInviteLifecycle()


@pytest.fixture
def guardian_invites():
    return GuardianInviteLifecycle()


@pytest.fixture
def org_admin(session_factory, world):
    """An ORG_ADMIN at the Corner Pharmacy."""
    with session_factory() as s:
        u = User(email="admin@cornerpharmacy.lk", password_hash="x")
        s.add(u)
        s.flush()
        s.add(OrgMember(user_id=u.id, org_id=world.pharmacy, role=OrgRole.ORG_ADMIN))
        s.commit()
        return u.id


def _invite_row(session_factory, model, token):
    with session_factory() as s:
        return s.query(model).filter_by(token=token).one()


# ---------------- org invites ----------------


def test_org_invite_create_and_accept_new_user(session_factory, world, actor_for,
                                               org_admin, org_invites):
    with session_factory() as s:
        invite = org_invites.create(s, actor_for(org_admin), world.pharmacy,
                                    "  New.Pharm@CornerPharmacy.lk ", OrgRole.PHARMACIST)

    assert invite.status == InviteStatus.PENDING
    assert invite.email == "new.pharm@cornerpharmacy.lk"
    assert len(invite.token) >= 32
    assert invite.expires_at - invite.created_at == timedelta(days=settings.INVITE_TTL_DAYS)

    with session_factory() as s:
        user, created = org_invites.accept(s, invite.token, NEW_PASSWORD)
    assert created is True

    with session_factory() as s:
        member = s.query(OrgMember).filter_by(user_id=user.id).one()
        assert member.org_id == world.pharmacy
        assert member.role == OrgRole.PHARMACIST
        assert verify_password(NEW_PASSWORD, s.get(User, user.id).password_hash)
        actions = [a.action for a in s.query(AuditLog).order_by(AuditLog.id)]
        assert actions == ["org_invite.create", "org_invite.accept"]

    assert _invite_row(session_factory, OrgInvite, invite.token).status == InviteStatus.ACCEPTED


def test_accepted_invite_cannot_be_reused(session_factory, world, actor_for, org_invites):
    with session_factory() as s:
        invite = org_invites.create(s, actor_for(world.root), world.hospital,
                                    "nurse@mail.lk", OrgRole.DOCTOR)
    with session_factory() as s:
        org_invites.accept(s, invite.token, NEW_PASSWORD)

    with session_factory() as s:
        with pytest.raises(InvalidStateError):
            org_invites.accept(s, invite.token, NEW_PASSWORD)

    with session_factory() as s:
        user = s.query(User).filter_by(email="nurse@mail.lk").one()
        assert s.query(OrgMember).filter_by(user_id=user.id).count() == 1


def test_accept_for_existing_user_keeps_password(session_factory, world, actor_for,
                                                 org_invites):
    with session_factory() as s:
        invite = org_invites.create(s, actor_for(world.root), world.hospital,
                                    "Stranger@Mail.lk", OrgRole.DOCTOR)
    with session_factory() as s:
        user, created = org_invites.accept(s, invite.token, NEW_PASSWORD)

    assert created is False
    assert user.id == world.stranger
    with session_factory() as s:
        stored = s.get(User, world.stranger).password_hash
        assert verify_password(PASSWORD, stored)
        assert not verify_password(NEW_PASSWORD, stored)


def test_expired_invite_is_marked_and_stays_expired(session_factory, world, actor_for,
                                                    org_invites):
    issued = utcnow() - timedelta(days=settings.INVITE_TTL_DAYS + 1)
    with session_factory() as s:
        invite = org_invites.create(s, actor_for(world.root), world.hospital,
                                    "late@mail.lk", OrgRole.DOCTOR, now=issued)

    for _ in range(2):
        with session_factory() as s:
            with pytest.raises(ExpiredError) as exc:
                org_invites.accept(s, invite.token, NEW_PASSWORD)
        assert exc.value.code == "INVITE_EXPIRED"
        assert exc.value.http_status == 410
        assert _invite_row(session_factory, OrgInvite, invite.token).status == InviteStatus.EXPIRED

    with session_factory() as s:
        assert s.query(User).filter_by(email="late@mail.lk").count() == 0


def test_accept_uses_supplied_clock(session_factory, world, actor_for, org_invites):
    with session_factory() as s:
        invite = org_invites.create(s, actor_for(world.root), world.hospital,
                                    "clock@mail.lk", OrgRole.DOCTOR)

    later = invite.expires_at + timedelta(seconds=1)
    with session_factory() as s:
        with pytest.raises(ExpiredError):
            org_invites.accept(s, invite.token, NEW_PASSWORD, now=later)


def test_org_invite_rules(session_factory, world, actor_for, org_admin, org_invites):
    admin, pharmacist, root = (actor_for(org_admin), actor_for(world.pharmacist),
                               actor_for(world.root))

    with session_factory() as s:
        with pytest.raises(InvalidInputError, match="domain"):
            org_invites.create(s, admin, world.pharmacy, "someone@gmail.com",
                               OrgRole.PHARMACIST)
        with pytest.raises(ConflictError):
            org_invites.create(s, admin, world.pharmacy, "pharm@cornerpharmacy.lk",
                               OrgRole.PHARMACIST)
        # admin of one org only
        with pytest.raises(ForbiddenError):
            org_invites.create(s, admin, world.hospital, "x@cityhospital.lk",
                               OrgRole.DOCTOR)
        with pytest.raises(ForbiddenError):
            org_invites.create(s, pharmacist, world.pharmacy,
                               "y@cornerpharmacy.lk", OrgRole.PHARMACIST)
        with pytest.raises(NotFoundError):
            org_invites.create(s, root, 9999, "z@mail.lk",
                               OrgRole.DOCTOR)


def test_pending_invite_blocks_duplicate(session_factory, world, actor_for, org_admin,
                                         org_invites):
    admin = actor_for(org_admin)
    with session_factory() as s:
        org_invites.create(s, admin, world.pharmacy, "dup@cornerpharmacy.lk",
                           OrgRole.PHARMACIST)
    with session_factory() as s:
        with pytest.raises(ConflictError):
            org_invites.create(s, admin, world.pharmacy, "DUP@cornerpharmacy.lk",
                               OrgRole.PHARMACIST)

    with session_factory() as s:
        assert s.query(OrgInvite).filter_by(email="dup@cornerpharmacy.lk").count() == 1


def test_suspended_org_cannot_invite(session_factory, world, actor_for, org_invites):
    with session_factory() as s:
        s.get(Organization, world.lab).status = OrgStatus.SUSPENDED
        s.commit()

    with session_factory() as s:
        with pytest.raises(InvalidStateError):
            org_invites.create(s, actor_for(world.root), world.lab, "a@centrallab.lk",
                               OrgRole.LAB_TECH)


def test_unknown_token_and_short_password(session_factory, world, actor_for, org_invites):
    with session_factory() as s:
        with pytest.raises(NotFoundError):
            org_invites.accept(s, "no-such-token", NEW_PASSWORD)

    with session_factory() as s:
        invite = org_invites.create(s, actor_for(world.root), world.hospital,
                                    "short@mail.lk", OrgRole.DOCTOR)
    with session_factory() as s:
        with pytest.raises(InvalidInputError):
            org_invites.accept(s, invite.token, "short")

    assert _invite_row(session_factory, OrgInvite, invite.token).status == InviteStatus.PENDING


def test_failing_audit_sink_does_not_block_accept(session_factory, world, actor_for):
    def broken_sink(*args, **kwargs):
        raise RuntimeError("audit store down")

    lifecycle = OrgInviteLifecycle(audit=broken_sink)
    with session_factory() as s:
        invite = lifecycle.create(s, actor_for(world.root), world.hospital,
                                  "quiet@mail.lk", OrgRole.DOCTOR)
    with session_factory() as s:
        user, created = lifecycle.accept(s, invite.token, NEW_PASSWORD)

    assert created is True
    assert _invite_row(session_factory, OrgInvite, invite.token).status == InviteStatus.ACCEPTED


# ---------------- guardian invites ----------------


def test_guardian_invite_links_new_user(session_factory, world, actor_for,
                                        guardian_invites):
    with session_factory() as s:
        invite = guardian_invites.create(s, actor_for(world.patient), world.patient,
                                         "mum@mail.lk")
    assert invite.patient_id == world.patient

    with session_factory() as s:
        user, created = guardian_invites.accept(s, invite.token, NEW_PASSWORD)
    assert created is True

    with session_factory() as s:
        link = s.query(GuardianLink).filter_by(guardian_id=user.id).one()
        assert link.patient_id == world.patient
        assert link.status == GuardianStatus.ACTIVE

    assert _invite_row(session_factory, GuardianInvite,
                       invite.token).status == InviteStatus.ACCEPTED


def test_guardian_invite_reactivates_revoked_link(session_factory, world, actor_for,
                                                  guardian_invites):
    with session_factory() as s:
        s.add(GuardianLink(patient_id=world.patient,
                           guardian_id=world.guardian,
                           status=GuardianStatus.REVOKED))
        s.commit()

    with session_factory() as s:
        invite = guardian_invites.create(s, actor_for(world.patient), world.patient,
                                         "guardian@mail.lk")
    with session_factory() as s:
        user, created = guardian_invites.accept(s, invite.token, NEW_PASSWORD)

    assert (user.id, created) == (world.guardian, False)
    with session_factory() as s:
        links = s.query(GuardianLink).filter_by(patient_id=world.patient).all()
        assert [link.status for link in links] == [GuardianStatus.ACTIVE]


def test_guardian_invite_rules(session_factory, world, actor_for, guardian_invites):
    with session_factory() as s:
        s.add(GuardianLink(patient_id=world.patient, guardian_id=world.guardian))
        s.commit()
    patient, stranger, root = (actor_for(world.patient), actor_for(world.stranger),
                               actor_for(world.root))

    with session_factory() as s:
        with pytest.raises(InvalidInputError, match="patient"):
            guardian_invites.create(s, patient, world.patient, "Patient@mail.lk")
        with pytest.raises(ConflictError):
            guardian_invites.create(s, patient, world.patient, "guardian@mail.lk")
        with pytest.raises(ForbiddenError):
            guardian_invites.create(s, stranger, world.patient, "dad@mail.lk")
        with pytest.raises(NotFoundError):
            guardian_invites.create(s, root, 9999, "dad@mail.lk")

    # root admin may invite on a patient's behalf
    with session_factory() as s:
        invite = guardian_invites.create(s, root, world.patient,
                                         "dad@mail.lk")
    assert invite.invited_by_id == world.root


def test_guardian_and_org_tokens_are_separate(session_factory, world, actor_for,
                                              org_invites, guardian_invites):
    with session_factory() as s:
        invite = guardian_invites.create(s, actor_for(world.patient), world.patient,
                                         "aunt@mail.lk")

    with session_factory() as s:
        with pytest.raises(NotFoundError):
            org_invites.accept(s, invite.token, NEW_PASSWORD)


# ---------------- concurrent accepts ----------------


def _issue(kind, session_factory, world, actor_for, email):
    if kind == "org":
        lifecycle = OrgInviteLifecycle()
        inviter, args = actor_for(world.root), (world.hospital, email, OrgRole.DOCTOR)
    else:
        lifecycle = GuardianInviteLifecycle()
        inviter, args = actor_for(world.patient), (world.patient, email)
    with session_factory() as s:
        return lifecycle, lifecycle.create(s, inviter, *args)


@pytest.mark.parametrize("kind", ["org", "guardian"])
def test_concurrent_accepts_grant_once(session_factory, world, actor_for, kind):
    email = "racer@mail.lk"
    lifecycle, invite = _issue(kind, session_factory, world, actor_for, email)
    barrier = threading.Barrier(4)
    outcomes = []
    lock = threading.Lock()

    def worker():
        barrier.wait()
        try:
            with session_factory() as s:
                lifecycle.accept(s, invite.token, NEW_PASSWORD)
            result = "ok"
        except (InvalidStateError, ConflictError) as exc:
            result = exc.code
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert len(outcomes) == 4
    assert outcomes.count("ok") == 1
    assert set(outcomes) <= {"ok", "INVALID_STATE", "CONFLICT"}

    with session_factory() as s:
        user = s.query(User).filter_by(email=email).one()
        if kind == "org":
            grants = s.query(OrgMember).filter_by(user_id=user.id).count()
        else:
            grants = s.query(GuardianLink).filter_by(guardian_id=user.id).count()
        assert grants == 1
        row = s.query(type(invite)).filter_by(token=invite.token).one()
        assert row.status == InviteStatus.ACCEPTED
