from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from carebase.api.deps import _extract_bearer, current_actor, get_db
from carebase.core.config import settings
from carebase.core.security import verify_password
from carebase.models.user import User
from carebase.schemas.auth import LoginIn, TokenOut
from carebase.services.access import Actor
from carebase.services.invites import find_user_by_email
from carebase.utils.jwt import REFRESH, create_access_refresh, decode_user_id
from carebase.utils.resp import ok

router = APIRouter()

REFRESH_COOKIE = "refresh_token"


def _token_response(user: User) -> JSONResponse:
    access, refresh = create_access_refresh(user.id)
    resp = ok(
        TokenOut(access_token=access, refresh_token=refresh, user_id=user.id))
    resp.set_cookie(
        key=REFRESH_COOKIE,
        value=refresh,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
        max_age=settings.REFRESH_TOKEN_EXPIRE_MINUTES * 60,
        path="/",
    )
    return resp


@router.post("/login")
def login(payload: LoginIn, db: Session = Depends(get_db)):
    user = find_user_by_email(db, payload.email)
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")

    return _token_response(user)


@router.post("/refresh")
def refresh(
        request: Request,
        authorization: Optional[str] = Header(None),
        db: Session = Depends(get_db),
):
    """
    Issue a fresh access + refresh pair from a refresh token.

    - Reads the refresh_token cookie (fallback: Authorization Bearer)
    - Rejects access tokens and unknown / inactive users
    - Rotates the cookie
    """
    raw = request.cookies.get(REFRESH_COOKIE) or _extract_bearer(authorization)
    if not raw:
        raise HTTPException(status_code=401, detail="Missing refresh token")

    user_id = decode_user_id(raw, token_type=REFRESH)
    if user_id is None:
        raise HTTPException(status_code=401, detail="Invalid refresh token")

    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid refresh token")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="User inactive")

    return _token_response(user)


@router.post("/logout")
def logout():
    # tokens are stateless; clearing the cookie ends browser refreshes
    resp = ok({"message": "Logged out"})
    resp.delete_cookie(REFRESH_COOKIE, path="/")
    return resp


@router.get("/me")
def me(actor: Actor = Depends(current_actor)):
    return ok({
        "user_id": actor.user_id,
        "global_role": actor.global_role,
        "memberships": [{
            "org_id": m.org_id,
            "role": m.role,
            "org_type": m.org_type,
        } for m in actor.memberships],
    })
