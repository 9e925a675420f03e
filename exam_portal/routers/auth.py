"""Account routes: register, cookie-session login/logout, profile."""

import logging

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi import status as http_status
from sqlmodel import Session, select

from exam_portal.auth_utils import hash_password, verify_password
from exam_portal.database import commit_or_raise, get_session
from exam_portal.deps import Principal, require_login, require_role
from exam_portal.models import User
from exam_portal.schemas import LoginIn, RegisterIn, serialize_user

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register", status_code=http_status.HTTP_201_CREATED)
def register(payload: RegisterIn = Body(...), session: Session = Depends(get_session)):
    email = payload.email.strip().lower()
    existing = session.exec(select(User).where(User.email == email)).first()
    if existing:
        raise HTTPException(status_code=400, detail="User already exists")

    user = User(
        name=payload.name.strip(),
        email=email,
        password_hash=hash_password(payload.password),
        role=payload.role,
    )
    session.add(user)
    commit_or_raise(session)
    session.refresh(user)
    return {"message": "User registered successfully", "user": serialize_user(user)}


@router.post("/login")
def login(request: Request, payload: LoginIn = Body(...), session: Session = Depends(get_session)):
    email = payload.email.strip().lower()
    user = session.exec(select(User).where(User.email == email)).first()
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(status_code=400, detail="Invalid credentials")

    request.session["user_id"] = user.id
    logger.info("User %s logged in as %s", user.id, user.role)
    return {"user": serialize_user(user)}


@router.post("/logout")
def logout(request: Request):
    request.session.clear()
    return {"message": "Logged out"}


@router.get("/profile")
def profile(principal: Principal = Depends(require_login), session: Session = Depends(get_session)):
    user = session.get(User, principal.user_id)
    return serialize_user(user)


@router.get("/admin/users")
def list_users(
    principal: Principal = Depends(require_role(["admin"])),
    session: Session = Depends(get_session),
):
    users = session.exec(select(User).order_by(User.id)).all()
    return [serialize_user(user) for user in users]
