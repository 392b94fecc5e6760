import logging
import threading
from typing import List, NamedTuple, Optional

from passlib.hash import pbkdf2_sha256 as hasher
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from findr.errors import AuthError, CollaboratorError
from findr.models.user import User
from findr.services.collaborators import IdentityListener, Unsubscribe
from findr.utils.auth_helper import Identity, decode_token, sign_token
from findr.utils.form_validator import validate_reporter_email

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

AUTH_MESSAGES = {
    "weak-password": "The password provided is too weak.",
    "email-already-in-use": "An account already exists for that email.",
    "user-not-found": "No user found for that email.",
    "wrong-password": "Wrong password provided.",
    "invalid-email": "The email address is invalid.",
}


def _auth_error(code: str) -> AuthError:
    return AuthError(code, AUTH_MESSAGES[code])


class AuthResult(NamedTuple):
    identity: Identity
    access_token: str


class AuthService:
    """Email/password accounts in the users table, sessions as signed JWTs."""

    def __init__(self, engine, secret: str, expire_minutes: int = 24 * 60):
        self.engine = engine
        self.secret = secret
        self.expire_minutes = expire_minutes

    def sign_up(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip()

        # the account email becomes the reporter email of every report it files
        if validate_reporter_email(email):
            raise _auth_error("invalid-email")

        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise _auth_error("weak-password")

        user = User(email=email, password_hash=hasher.hash(password))

        try:
            with Session(self.engine, expire_on_commit=False) as session:
                existing = session.exec(select(User).where(User.email == email)).first()
                if existing:
                    raise _auth_error("email-already-in-use")

                session.add(user)
                session.commit()
                session.refresh(user)
        except IntegrityError as e:
            # lost a race against a concurrent sign up for the same email
            raise _auth_error("email-already-in-use") from e
        except SQLAlchemyError as e:
            raise CollaboratorError("sign up", e) from e

        logger.info("Created account for %s", email)
        return self._issue(user)

    def sign_in(self, email: str, password: str) -> AuthResult:
        email = (email or "").strip()

        if validate_reporter_email(email):
            raise _auth_error("invalid-email")

        try:
            with Session(self.engine, expire_on_commit=False) as session:
                user = session.exec(select(User).where(User.email == email)).first()
        except SQLAlchemyError as e:
            raise CollaboratorError("sign in", e) from e

        if not user:
            raise _auth_error("user-not-found")

        if not hasher.verify(password or "", user.password_hash):
            logger.warning("Wrong password for %s", email)
            raise _auth_error("wrong-password")

        return self._issue(user)

    def verify(self, token: str) -> Optional[Identity]:
        return decode_token(token, self.secret)

    def _issue(self, user: User) -> AuthResult:
        token = sign_token(user.id, user.email, self.secret, self.expire_minutes)
        return AuthResult(identity=Identity(email=user.email), access_token=token)


class IdentitySession:
    """
    One client's signed-in state on top of AuthService.

    Implements the identity provider interface: current_identity() plus a
    stream of identity changes (sign up, sign in, sign out).
    """

    def __init__(self, auth: AuthService):
        self.auth = auth
        self._identity: Optional[Identity] = None
        self._token: Optional[str] = None
        self._listeners: List[IdentityListener] = []
        self._lock = threading.Lock()

    @property
    def access_token(self) -> Optional[str]:
        return self._token

    def current_identity(self) -> Optional[Identity]:
        return self._identity

    def sign_up(self, email: str, password: str) -> Identity:
        return self._set(self.auth.sign_up(email, password))

    def sign_in(self, email: str, password: str) -> Identity:
        return self._set(self.auth.sign_in(email, password))

    def sign_out(self):
        self._identity = None
        self._token = None
        self._emit()

    def subscribe(self, listener: IdentityListener) -> Unsubscribe:
        with self._lock:
            self._listeners.append(listener)

        listener(self._identity)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def _set(self, result: AuthResult) -> Identity:
        self._identity = result.identity
        self._token = result.access_token
        self._emit()
        return result.identity

    def _emit(self):
        with self._lock:
            listeners = list(self._listeners)

        for listener in listeners:
            listener(self._identity)
