from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Identité authentifiée telle que vue par le storefront."""
    uid: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    role: str = "user"


class SignInFlow(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"


class PolicyDecision(str, Enum):
    ALLOWED = "allowed"
    NEEDS_SIGNUP = "needs_signup"
    DENIED = "denied"


class AuthErrorCode(str, Enum):
    INVALID_EMAIL = "invalid_email"
    ALREADY_IN_USE = "already_in_use"
    CREDENTIAL_MISMATCH = "credential_mismatch"
    UNKNOWN = "unknown"


ERROR_MESSAGES = {
    AuthErrorCode.INVALID_EMAIL: "Votre adresse email est invalide",
    AuthErrorCode.ALREADY_IN_USE: "Cette adresse email est déjà utilisée",
    AuthErrorCode.CREDENTIAL_MISMATCH: (
        "L'email et le mot de passe saisis ne correspondent pas. Veuillez vérifier et réessayer."
    ),
    AuthErrorCode.UNKNOWN: "Une erreur est survenue, veuillez réessayer.",
}


@dataclass(frozen=True)
class PolicyResult:
    """Résultat explicite d'un parcours connexion/inscription."""
    decision: PolicyDecision
    identity: Optional[Identity] = None
    message: Optional[str] = None
    error_code: Optional[AuthErrorCode] = None
    created: bool = False
    access_token: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision is PolicyDecision.ALLOWED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "uid": self.identity.uid if self.identity else None,
            "message": self.message,
            "errorCode": self.error_code.value if self.error_code else None,
            "created": self.created,
        }


class AuthResponse:
    def __init__(
        self,
        success: bool,
        user: Optional[Dict[str, Any]] = None,
        session: Optional[Dict[str, Any]] = None,
        error: Optional[str] = None,
        error_code: Optional[AuthErrorCode] = None,
    ):
        self.success = success
        self.user = user
        self.session = session
        self.error = error
        self.error_code = error_code

    @property
    def access_token(self):
        return (self.session or {}).get("access_token")

    @property
    def refresh_token(self):
        return (self.session or {}).get("refresh_token")


def determine_role(metadata: Dict[str, Any] | None) -> str:
    if str((metadata or {}).get("role", "")).lower() == "admin":
        return "admin"
    return "user"


def identity_from_user(user) -> Optional[Identity]:
    """Construit une Identity depuis un user GoTrue (objet ou dict)."""
    if not user:
        return None
    if isinstance(user, dict):
        uid, email, metadata = user.get("id"), user.get("email"), user.get("user_metadata")
    else:
        uid, email, metadata = getattr(user, "id", None), getattr(user, "email", None), getattr(user, "user_metadata", None)
    if not uid:
        return None
    metadata = metadata or {}
    display_name = metadata.get("full_name") or metadata.get("name")
    return Identity(uid=str(uid), email=email, display_name=display_name, role=determine_role(metadata))


def build_user_dict(identity: Identity) -> Dict[str, Any]:
    return {
        "id": identity.uid,
        "email": identity.email,
        "displayName": identity.display_name,
        "role": identity.role,
    }


def build_session_dict(session) -> Dict[str, Any]:
    return {
        "access_token": getattr(session, "access_token", None),
        "refresh_token": getattr(session, "refresh_token", None),
    }


def make_auth_response(res, fallback_error: str = "Identifiants invalides") -> AuthResponse:
    sess = getattr(res, "session", None)
    identity = identity_from_user(getattr(res, "user", None))
    if not sess or not getattr(sess, "access_token", None) or identity is None:
        return AuthResponse(False, error=fallback_error, error_code=AuthErrorCode.CREDENTIAL_MISMATCH)
    return AuthResponse(True, user=build_user_dict(identity), session=build_session_dict(sess))


def error_code_from_exception(e: Exception) -> AuthErrorCode:
    """
    Normalise une erreur GoTrue en code applicatif.
    - AuthApiError.code quand il est disponible (ex: email_address_invalid, user_already_exists)
    - sinon heuristique sur le message
    """
    code = str(getattr(e, "code", "") or "").lower()
    msg = str(e).lower()
    if code in ("email_address_invalid", "validation_failed") or "invalid email" in msg or "invalid format" in msg:
        return AuthErrorCode.INVALID_EMAIL
    if code in ("user_already_exists", "email_exists") or any(k in msg for k in ["already", "registered", "exists"]):
        return AuthErrorCode.ALREADY_IN_USE
    if code == "invalid_credentials" or "invalid login credentials" in msg:
        return AuthErrorCode.CREDENTIAL_MISMATCH
    return AuthErrorCode.UNKNOWN


def handle_exception(action: str, e: Exception) -> AuthResponse:
    logger.exception(f"Erreur {action}")
    code = error_code_from_exception(e)
    return AuthResponse(False, error=ERROR_MESSAGES[code], error_code=code)
