from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from findr.errors import AuthError, CollaboratorError
from findr.services.auth_service import AuthResult, AuthService

router = APIRouter()


class Credentials(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    email: str


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def _token_response(result: AuthResult) -> TokenResponse:
    return TokenResponse(access_token=result.access_token, email=result.identity.email)


@router.post("/signup", response_model=TokenResponse)
def signup(payload: Credentials, auth: AuthService = Depends(get_auth_service)):
    try:
        result = auth.sign_up(payload.email, payload.password)
    except AuthError as e:
        status = 409 if e.code == "email-already-in-use" else 400
        raise HTTPException(status_code=status, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return _token_response(result)


@router.post("/login", response_model=TokenResponse)
def login(payload: Credentials, auth: AuthService = Depends(get_auth_service)):
    try:
        result = auth.sign_in(payload.email, payload.password)
    except AuthError as e:
        status = 400 if e.code == "invalid-email" else 401
        raise HTTPException(status_code=status, detail=str(e))
    except CollaboratorError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return _token_response(result)
