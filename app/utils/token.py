import logging
from typing import Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from app.config import settings
from app.database import get_session
from app.models.user import User, ROLE_ADMIN, ROLE_USER
from app.utils.firebase_auth import get_token_verifier

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str):
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def find_user(session: Session, firebase_uid: str) -> Optional[User]:
    return session.exec(select(User).where(User.firebase_uid == firebase_uid)).first()


def get_or_create_user(session: Session, claims: Dict[str, Optional[str]]) -> User:
    user = find_user(session, claims["uid"])
    if user:
        return user

    email = (claims.get("email") or "").lower()
    if not email:
        raise _unauthorized("Token carries no email")

    user = User(
        firebase_uid=claims["uid"],
        email=email,
        display_name=claims.get("name") or email.split("@")[0],
        photo_url=claims.get("picture") or "",
        role=ROLE_ADMIN if email in settings.admin_email_set else ROLE_USER,
    )
    session.add(user)
    try:
        session.commit()
    except IntegrityError:
        # a parallel first request created the same user
        session.rollback()
        existing = find_user(session, claims["uid"])
        if existing is None:
            raise
        logger.info(f"User for {email} created concurrently, reusing {existing.id}")
        return existing
    session.refresh(user)

    logger.info(f"Created user {user.id} for {email} (role {user.role})")
    return user


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    verify: Callable = Depends(get_token_verifier),
    session: Session = Depends(get_session),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Unauthorized: No token provided")

    claims = verify(credentials.credentials)
    if not claims:
        raise _unauthorized("Unauthorized: Invalid token")

    return get_or_create_user(session, claims)
