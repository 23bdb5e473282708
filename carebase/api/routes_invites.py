# carebase/api/routes_invites.py
from fastapi import APIRouter, Depends, Path
from sqlalchemy.orm import Session

from carebase.api.deps import current_actor, get_db
from carebase.schemas.invite import (
    GuardianInviteIn,
    InviteAcceptIn,
    InviteAcceptOut,
    InviteOut,
    OrgInviteIn,
)
from carebase.services.access import Actor
from carebase.services.invites import GuardianInviteLifecycle, OrgInviteLifecycle
from carebase.utils.resp import ok

router = APIRouter()

org_invites = OrgInviteLifecycle()
guardian_invites = GuardianInviteLifecycle()


# ---------------- org membership ----------------


@router.post("/orgs/{org_id}/invites", status_code=201)
def invite_org_member(
        payload: OrgInviteIn,
        org_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    invite = org_invites.create(db, actor, org_id, payload.email, payload.role)
    return ok({"invite": InviteOut.model_validate(invite)}, status_code=201)


@router.post("/invites/accept")
def accept_org_invite(payload: InviteAcceptIn, db: Session = Depends(get_db)):
    user, created = org_invites.accept(db, payload.token, payload.password)
    return ok(InviteAcceptOut(user_id=user.id, created=created))


# ---------------- guardians ----------------


@router.post("/patients/{patient_id}/guardians/invite", status_code=201)
def invite_guardian(
        payload: GuardianInviteIn,
        patient_id: int = Path(..., ge=1),
        db: Session = Depends(get_db),
        actor: Actor = Depends(current_actor),
):
    invite = guardian_invites.create(db, actor, patient_id, payload.email)
    return ok({"invite": InviteOut.model_validate(invite)}, status_code=201)


@router.post("/guardians/accept")
def accept_guardian_invite(payload: InviteAcceptIn,
                           db: Session = Depends(get_db)):
    user, created = guardian_invites.accept(db, payload.token,
                                            payload.password)
    return ok(InviteAcceptOut(user_id=user.id, created=created))
