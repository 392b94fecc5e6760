from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from findr.models.report import Report

ALGORITHM = "HS256"


class Identity(BaseModel):
    email: str


def is_owner(report: Report, email: Optional[str]) -> bool:
    # exact comparison, "Bob@x.com" does not own a report filed by "bob@x.com"
    return email is not None and email == report.reporter_email


def sign_token(user_id: int, email: str, secret: str, expire_minutes: int) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=expire_minutes),
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, secret: str) -> Optional[Identity]:
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except JWTError:
        return None

    email = payload.get("email")
    if not email:
        return None

    return Identity(email=email)


bearer_scheme_optional = HTTPBearer(auto_error=False)


def get_current_identity_optional(
    request: Request,
    token: HTTPAuthorizationCredentials = Depends(bearer_scheme_optional),
) -> Optional[Identity]:
    if not token:
        return None

    return request.app.state.auth_service.verify(token.credentials)


bearer_scheme_required = HTTPBearer(auto_error=True)


def get_current_identity_required(
    request: Request,
    token: HTTPAuthorizationCredentials = Depends(bearer_scheme_required),
) -> Identity:
    identity = request.app.state.auth_service.verify(token.credentials)

    if identity is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")

    return identity
