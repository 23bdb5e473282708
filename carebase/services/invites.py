# carebase/services/invites.py
"""
Token invites: one state machine, two uses.

  PENDING --accept--> ACCEPTED
  PENDING --accept after expiry--> EXPIRED

Neither terminal state ever goes back to PENDING. ``OrgInviteLifecycle``
adds an org membership on accept, ``GuardianInviteLifecycle`` a guardian
link to a patient.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Tuple, Type, Union

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from carebase.core import emailer
from carebase.core.config import settings
from carebase.core.errors import (
    CarebaseError,
    ConflictError,
    ExpiredError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from carebase.core.security import hash_password
from carebase.db.session import is_retryable_conflict
from carebase.models.guardian import GuardianInvite, GuardianLink, GuardianStatus
from carebase.models.organization import (
    InviteStatus,
    OrgInvite,
    OrgMember,
    OrgRole,
    OrgStatus,
    Organization,
)
from carebase.models.user import GlobalRole, User
from carebase.services.access import Actor, can_manage_org
from carebase.services.audit_logger import log_audit
from carebase.utils.timezone import utcnow

logger = logging.getLogger(__name__)

AnyInvite = Union[OrgInvite, GuardianInvite]


def new_invite_token() -> str:
    return secrets.token_urlsafe(32)


def _norm_email(email: str) -> str:
    return (email or "").strip().lower()


def _email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1] if "@" in email else ""


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(
        func.lower(User.email) == _norm_email(email)).first()


class InviteLifecycle:
    """
    Shared create/accept mechanics. Subclasses set ``model`` and ``kind``
    and implement the target-specific checks and the grant on accept.
    """

    model: Type[Any]
    kind: str = "invite"

    def __init__(self, audit: Callable[..., object] = log_audit):
        self.audit = audit

    # ---------- hooks ----------

    def _grant(self, db: Session, invite: AnyInvite, user: User) -> None:
        raise NotImplementedError

    def _audit_org_id(self, invite: AnyInvite) -> Optional[int]:
        return None

    def _email_text(self, invite: AnyInvite) -> Tuple[str, str]:
        raise NotImplementedError

    # ---------- create ----------

    def _has_pending(self, db: Session, email: str, now: datetime,
                     **target: Any) -> bool:
        q = db.query(self.model).filter(
            self.model.email == email,
            self.model.status == InviteStatus.PENDING,
            self.model.expires_at > now,
        )
        for col, value in target.items():
            q = q.filter(getattr(self.model, col) == value)
        return q.first() is not None

    def _issue(self, db: Session, inviter: Actor, email: str,
               now: datetime, **target: Any) -> AnyInvite:
        if self._has_pending(db, email, now, **target):
            raise ConflictError("Invite already pending")

        invite = self.model(
            email=email,
            token=new_invite_token(),
            status=InviteStatus.PENDING,
            expires_at=now + timedelta(days=settings.INVITE_TTL_DAYS),
            invited_by_id=inviter.user_id,
            created_at=now,
            **target,
        )
        db.add(invite)
        try:
            db.commit()
        except (IntegrityError, OperationalError) as exc:
            db.rollback()
            if is_retryable_conflict(exc):
                raise ConflictError("Invite could not be created, retry",
                                    retryable=True) from exc
            raise

        logger.info("Created %s %s for %s", self.kind, invite.id, email)
        self._after_commit(db,
                           action=f"{self.kind}.create",
                           actor_user_id=inviter.user_id,
                           invite=invite)
        self._send_email(invite)
        return invite

    # ---------- accept ----------

    def accept(self,
               db: Session,
               token: str,
               password: str,
               *,
               now: Optional[datetime] = None) -> Tuple[User, bool]:
        """
        Consume a PENDING invite. Returns (user, created) where ``created``
        says whether a new account was made for the invitee.

        An invite found past its expiry is moved to EXPIRED (committed) and
        the call fails with ExpiredError; later calls fail the same way
        without writing again.
        """
        now = now or utcnow()
        if len(password or "") < settings.PASSWORD_MIN_LENGTH:
            raise InvalidInputError(
                f"Password must be at least {settings.PASSWORD_MIN_LENGTH} characters"
            )

        try:
            invite = (db.query(self.model).filter(
                self.model.token == token).populate_existing().with_for_update().first())
            if not invite:
                raise NotFoundError("Invite not found")

            if invite.status == InviteStatus.EXPIRED:
                raise ExpiredError("Invite expired")
            if invite.status != InviteStatus.PENDING:
                raise InvalidStateError("Invite is not active",
                                        details={"status": invite.status.value})

            if invite.expires_at <= now:
                invite.status = InviteStatus.EXPIRED
                db.commit()
                logger.info("%s %s expired on accept", self.kind, invite.id)
                raise ExpiredError("Invite expired")

            created = False
            user = find_user_by_email(db, invite.email)
            if not user:
                user = User(
                    email=invite.email,
                    password_hash=hash_password(password),
                    global_role=GlobalRole.USER,
                    is_active=True,
                )
                db.add(user)
                db.flush()
                created = True

            self._grant(db, invite, user)
            invite.status = InviteStatus.ACCEPTED
            db.commit()
        except CarebaseError:
            db.rollback()
            raise
        except (IntegrityError, OperationalError) as exc:
            db.rollback()
            if is_retryable_conflict(exc):
                raise ConflictError("Invite was accepted concurrently, retry",
                                    retryable=True) from exc
            raise

        logger.info("Accepted %s %s by user %s (created=%s)", self.kind,
                    invite.id, user.id, created)
        self._after_commit(db,
                           action=f"{self.kind}.accept",
                           actor_user_id=user.id,
                           invite=invite)
        return user, created

    # ---------- after commit ----------

    def _after_commit(self, db: Session, *, action: str,
                      actor_user_id: Optional[int],
                      invite: AnyInvite) -> None:
        try:
            self.audit(
                db,
                action=action,
                actor_user_id=actor_user_id,
                target_type=self.model.__tablename__,
                target_id=invite.id,
                org_id=self._audit_org_id(invite),
                metadata={
                    "email": invite.email,
                    "status": invite.status.value
                },
            )
        except Exception:
            logger.exception("Audit sink failed for %s %s", self.kind,
                             invite.id)

    def _send_email(self, invite: AnyInvite) -> None:
        if not settings.INVITE_EMAILS_ENABLED:
            return
        subject, body = self._email_text(invite)
        try:
            emailer.send_email(invite.email, subject, body)
        except Exception:
            logger.exception("Invite email failed for %s %s", self.kind,
                             invite.id)


class OrgInviteLifecycle(InviteLifecycle):
    model = OrgInvite
    kind = "org_invite"

    def create(self,
               db: Session,
               inviter: Actor,
               org_id: int,
               email: str,
               role: OrgRole,
               *,
               now: Optional[datetime] = None) -> OrgInvite:
        now = now or utcnow()
        email = _norm_email(email)

        if not can_manage_org(inviter, org_id):
            raise ForbiddenError("Only org admins can invite members")

        org = db.get(Organization, org_id)
        if not org:
            raise NotFoundError("Organization not found")
        if org.status != OrgStatus.ACTIVE:
            raise InvalidStateError("Organization is not active",
                                    details={"status": org.status.value})

        if org.domain and _email_domain(email) != org.domain.lower():
            raise InvalidInputError("Email domain not allowed",
                                    details={"domain": org.domain})

        user = find_user_by_email(db, email)
        if user and db.query(OrgMember).filter(
                OrgMember.user_id == user.id,
                OrgMember.org_id == org.id).first():
            raise ConflictError("User is already a member")

        return self._issue(db, inviter, email, now, org_id=org.id, role=role)

    def _grant(self, db: Session, invite: OrgInvite, user: User) -> None:
        member = (db.query(OrgMember).filter(
            OrgMember.user_id == user.id,
            OrgMember.org_id == invite.org_id).first())
        if member:
            return
        db.add(OrgMember(user_id=user.id,
                         org_id=invite.org_id,
                         role=invite.role))
        db.flush()

    def _audit_org_id(self, invite: OrgInvite) -> Optional[int]:
        return invite.org_id

    def _email_text(self, invite: OrgInvite) -> Tuple[str, str]:
        link = f"{settings.SITE_URL}/invites/accept?token={invite.token}"
        return (
            f"{settings.PROJECT_NAME}: Organization invite",
            f"You have been invited as {invite.role.value}.\n"
            f"Accept before {invite.expires_at:%Y-%m-%d %H:%M} UTC: {link}",
        )


class GuardianInviteLifecycle(InviteLifecycle):
    model = GuardianInvite
    kind = "guardian_invite"

    def create(self,
               db: Session,
               inviter: Actor,
               patient_id: int,
               email: str,
               *,
               now: Optional[datetime] = None) -> GuardianInvite:
        now = now or utcnow()
        email = _norm_email(email)

        patient = db.get(User, patient_id)
        if not patient:
            raise NotFoundError("Patient not found")

        if not (inviter.is_root_admin or inviter.user_id == patient.id):
            raise ForbiddenError("Only the patient can invite guardians")

        if email == _norm_email(patient.email):
            raise InvalidInputError("Guardian cannot be the patient")

        guardian = find_user_by_email(db, email)
        if guardian:
            link = (db.query(GuardianLink).filter(
                GuardianLink.patient_id == patient.id,
                GuardianLink.guardian_id == guardian.id,
            ).first())
            if link and link.status == GuardianStatus.ACTIVE:
                raise ConflictError("Guardian already linked")

        return self._issue(db, inviter, email, now, patient_id=patient.id)

    def _grant(self, db: Session, invite: GuardianInvite, user: User) -> None:
        if user.id == invite.patient_id:
            raise InvalidInputError("Guardian cannot be the patient")

        link = (db.query(GuardianLink).filter(
            GuardianLink.patient_id == invite.patient_id,
            GuardianLink.guardian_id == user.id,
        ).first())
        if link:
            link.status = GuardianStatus.ACTIVE
            return
        db.add(
            GuardianLink(patient_id=invite.patient_id,
                         guardian_id=user.id,
                         status=GuardianStatus.ACTIVE))
        db.flush()

    def _email_text(self, invite: GuardianInvite) -> Tuple[str, str]:
        link = f"{settings.SITE_URL}/guardian/accept?token={invite.token}"
        return (
            f"{settings.PROJECT_NAME}: Guardian invite",
            "You have been invited to act as a guardian.\n"
            f"Accept before {invite.expires_at:%Y-%m-%d %H:%M} UTC: {link}",
        )
