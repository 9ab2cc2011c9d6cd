"""
Session Authority

Owns the signed-in identity for the lifetime of the process and tells
its subscribers (store first, then the view controller) whenever it
changes. Nobody else keeps a copy of "the current user".
"""

from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

from pydantic import BaseModel
from loguru import logger

from recruitai.orchestrator.schema import AuthMode, Credentials, Identity, LoginResponse, Role
from recruitai.utils.error_handlers import (
    AuthError,
    ErrorKind,
    NotFoundError,
    RecruitingError,
    ValidationError,
)

if TYPE_CHECKING:
    from recruitai.clients.recruiting_client import RecruitingApiClient

IdentityListener = Callable[[Optional[Identity]], None]


class AuthFailure(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    NETWORK_ERROR = "network_error"
    VALIDATION_ERROR = "validation_error"


class AuthResult(BaseModel):
    identity: Optional[Identity] = None
    failure: Optional[AuthFailure] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.identity is not None


def resolve_login_identity(response: LoginResponse, email: str, selected_role: Role) -> Identity:
    """
    Turn a login answer into an Identity.

    Role: an explicit, valid `role` field wins; otherwise a recruiter id
    means recruiter and a candidate id means candidate; otherwise the
    role the user picked on the form. Id: recruiter id, then candidate
    id, then the generic id.
    """
    role: Optional[Role] = None
    if response.role:
        try:
            role = Role(response.role.strip().lower())
        except ValueError:
            logger.warning(f"Ignoring unknown role in login response: {response.role!r}")

    if role is None:
        if response.recruiter_id:
            role = Role.RECRUITER
        elif response.candidate_id:
            role = Role.CANDIDATE
        else:
            role = Role(selected_role)

    user_id = response.recruiter_id or response.candidate_id or response.id
    if not user_id:
        raise ValidationError("Login response did not contain a user id")

    return Identity(id=user_id, email=email, role=role)


def _signup_payload(role: Role, credentials: Credentials) -> dict:
    payload = {"email": credentials.email, "password": credentials.password}
    if role == Role.RECRUITER:
        if not credentials.company_name:
            raise ValidationError("Company name is required to sign up as a recruiter")
        payload["company_name"] = credentials.company_name
    else:
        if not credentials.contact_handle:
            raise ValidationError("Messaging handle is required to sign up as a candidate")
        payload["telegram_username"] = credentials.contact_handle.lstrip("@")
    return payload


def _failure_for(error: RecruitingError) -> AuthFailure:
    if isinstance(error, (AuthError, NotFoundError)):
        return AuthFailure.INVALID_CREDENTIALS
    if isinstance(error, ValidationError):
        return AuthFailure.VALIDATION_ERROR
    # Transport problems, 5xx and garbage answers: the user can only retry
    return AuthFailure.NETWORK_ERROR


class SessionAuthority:
    """Holds the current Identity and publishes changes to subscribers."""

    def __init__(self, client: "RecruitingApiClient"):
        self.client = client
        self._identity: Optional[Identity] = None
        self._listeners: list[IdentityListener] = []

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def subscribe(self, listener: IdentityListener) -> Callable[[], None]:
        """Listeners are called in subscription order."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self, identity: Optional[Identity]):
        self._identity = identity
        for listener in list(self._listeners):
            listener(identity)

    async def authenticate(self, mode: AuthMode, role: Role, credentials: Credentials) -> AuthResult:
        """
        Log in or sign up.

        Never raises for a rejected attempt; the caller branches on
        `AuthResult.failure`.
        """
        mode, role = AuthMode(mode), Role(role)
        logger.info(f"Authenticating ({mode.value}) as {role.value}: {credentials.email}")

        try:
            if mode == AuthMode.SIGNUP:
                response = await self.client.signup(role, _signup_payload(role, credentials))
                user_id = response.recruiter_id or response.candidate_id or response.id
                if not user_id:
                    raise ValidationError("Signup response did not contain a user id")
                # The backend is not guaranteed to echo the role back on signup
                identity = Identity(id=user_id, email=credentials.email, role=role)
            else:
                response = await self.client.login(credentials.email, credentials.password)
                identity = resolve_login_identity(response, credentials.email, role)
        except RecruitingError as e:
            failure = _failure_for(e)
            logger.warning(f"Authentication failed ({failure.value}): {e.message}")
            return AuthResult(failure=failure, message=e.message)

        self._publish(identity)
        logger.success(f"Signed in as {identity.role.value} {identity.id}")
        return AuthResult(identity=identity)

    def clear(self):
        if self._identity is None:
            return
        logger.info(f"Signing out {self._identity.email}")
        self._publish(None)

    def handle_error(self, kind: ErrorKind):
        """A request was rejected as unauthenticated: the session is gone."""
        if kind == ErrorKind.AUTH and self._identity is not None:
            logger.warning("Backend rejected the session, returning to sign-in")
            self.clear()
