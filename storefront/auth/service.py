"""
Cas d'usage Auth.

Les opérations GoTrue (bloquantes) sont exposées en fonctions synchrones normalisées
en AuthResponse; les parcours du dialogue connexion/inscription sont des pipelines
async séquentiels:
    connexion -> lecture du profil client -> décision (PolicyResult)
"""
import logging
from typing import Optional

from starlette.concurrency import run_in_threadpool

from storefront.config import OAUTH_REDIRECT_URL, RESET_REDIRECT_URL
from storefront.customers.repository import CustomerProfiles
from storefront.infra.documents import DocumentStoreError
from .models import (
    AuthErrorCode,
    AuthResponse,
    ERROR_MESSAGES,
    Identity,
    PolicyDecision,
    PolicyResult,
    SignInFlow,
    handle_exception,
    identity_from_user,
    make_auth_response,
)
from .repository import (
    auth_sign_in_password as sign_in_password,
    auth_sign_up_account as sign_up_account,
    auth_provider_url as _provider_url,
    auth_send_reset_password as send_reset_password,
    auth_sign_out as _sign_out,
    get_user_from_access_token as _repo_get_user_from_token,
)

logger = logging.getLogger(__name__)

PROVIDERS = ("google", "facebook", "twitter")

NO_ACCOUNT_MESSAGE = "Vous n'avez pas de compte. Veuillez d'abord vous inscrire !"
EXISTING_ACCOUNT_MESSAGE = "Connecté avec un compte existant"
ACCOUNT_CREATED_MESSAGE = "Votre compte a été créé."

# --- Opérations GoTrue normalisées ---

def login(email: str, password: str) -> AuthResponse:
    """Connexion email/mot de passe, normalisée en AuthResponse."""
    try:
        email = (email or "").strip()
        res = sign_in_password(email, password)
        return make_auth_response(res, fallback_error=ERROR_MESSAGES[AuthErrorCode.CREDENTIAL_MISMATCH])
    except Exception as e:
        return handle_exception("sign_in", e)

def signup(email: str, password: str) -> AuthResponse:
    """Création du compte puis connexion immédiate avec les mêmes identifiants."""
    try:
        email = (email or "").strip()
        sign_up_account(email=email, password=password)
    except Exception as e:
        return handle_exception("sign_up", e)
    return login(email, password)

def request_password_reset(email: str, redirect_to: str = RESET_REDIRECT_URL) -> AuthResponse:
    try:
        send_reset_password((email or "").strip(), redirect_to)
        return AuthResponse(True)
    except Exception as e:
        return handle_exception("send_reset_email", e)

def provider_sign_in_url(provider: str, redirect_to: str = OAUTH_REDIRECT_URL) -> str:
    """URL de connexion par fournisseur (équivalent du popup côté navigateur)."""
    provider = (provider or "").lower()
    if provider not in PROVIDERS:
        raise ValueError(f"Fournisseur inconnu: {provider}")
    return _provider_url(provider, redirect_to)

def get_identity_from_token(access_token: str) -> Optional[Identity]:
    """Identity associée au token, None si le token est invalide ou expiré."""
    try:
        return identity_from_user(_repo_get_user_from_token(access_token))
    except Exception:
        logger.info("auth.service.get_identity_from_token rejected token")
        return None

def sign_out(access_token: Optional[str]) -> None:
    if not access_token:
        return
    try:
        _sign_out(access_token)
    except Exception:
        logger.exception("auth.service.sign_out failed")

# --- Politique de session ---

async def check_policy(
    flow: SignInFlow,
    identity: Optional[Identity],
    profiles: CustomerProfiles,
    access_token: Optional[str] = None,
) -> PolicyResult:
    """
    Décide si l'identité connectée peut poursuivre pour le parcours demandé.
    - LOGIN: le profil client doit déjà exister; sinon déconnexion et NEEDS_SIGNUP
    - SIGNUP: profil existant -> ALLOWED; sinon création {createdOn} -> ALLOWED
    """
    if identity is None:
        return PolicyResult(PolicyDecision.DENIED, error_code=AuthErrorCode.CREDENTIAL_MISMATCH,
                            message=ERROR_MESSAGES[AuthErrorCode.CREDENTIAL_MISMATCH])
    try:
        snapshot = await profiles.get(identity.uid)
    except DocumentStoreError:
        return PolicyResult(PolicyDecision.DENIED, identity=identity, error_code=AuthErrorCode.UNKNOWN,
                            message=ERROR_MESSAGES[AuthErrorCode.UNKNOWN])

    if flow is SignInFlow.LOGIN:
        if snapshot.exists:
            return PolicyResult(PolicyDecision.ALLOWED, identity=identity, access_token=access_token)
        await run_in_threadpool(sign_out, access_token)
        return PolicyResult(PolicyDecision.NEEDS_SIGNUP, identity=identity, message=NO_ACCOUNT_MESSAGE)

    if snapshot.exists:
        return PolicyResult(PolicyDecision.ALLOWED, identity=identity, access_token=access_token,
                            message=EXISTING_ACCOUNT_MESSAGE)
    try:
        await profiles.create(identity.uid)
    except DocumentStoreError:
        # La création du profil n'empêche pas l'inscription
        logger.warning("auth.service.check_policy profile creation failed uid=%s", identity.uid)
    return PolicyResult(PolicyDecision.ALLOWED, identity=identity, access_token=access_token,
                        message=ACCOUNT_CREATED_MESSAGE, created=True)

def _identity(res: AuthResponse) -> Identity:
    user = res.user or {}
    return Identity(uid=user["id"], email=user.get("email"),
                    display_name=user.get("displayName"), role=user.get("role") or "user")

def _denied(res: AuthResponse) -> PolicyResult:
    return PolicyResult(PolicyDecision.DENIED, message=res.error,
                        error_code=res.error_code or AuthErrorCode.UNKNOWN)

async def login_with_email(email: str, password: str, profiles: CustomerProfiles) -> PolicyResult:
    res = await run_in_threadpool(login, email, password)
    if not res.success:
        return _denied(res)
    identity = _identity(res)
    return await check_policy(SignInFlow.LOGIN, identity, profiles, res.access_token)

async def signup_with_email(email: str, password: str, profiles: CustomerProfiles) -> PolicyResult:
    res = await run_in_threadpool(signup, email, password)
    if not res.success:
        return _denied(res)
    identity = _identity(res)
    return await check_policy(SignInFlow.SIGNUP, identity, profiles, res.access_token)

async def complete_sign_in(access_token: str, flow: SignInFlow, profiles: CustomerProfiles) -> PolicyResult:
    """Fin d'un parcours fournisseur: le front transmet le token obtenu après redirection."""
    identity = await run_in_threadpool(get_identity_from_token, access_token)
    return await check_policy(flow, identity, profiles, access_token)
