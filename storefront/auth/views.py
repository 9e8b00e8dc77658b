from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, EmailStr, Field, model_validator
from starlette.concurrency import run_in_threadpool

from storefront.customers.repository import CustomerProfiles
from storefront.dependencies import get_profiles
from storefront.state.service import StateService
from storefront.state.sessions import get_session_state
from storefront.utils.rate_limit import optional_rate_limit
from storefront.utils.security import clear_session_cookie, get_access_token, set_session_cookie
from . import service as auth_service
from .dialog import DialogView, LoginDialog
from .models import PolicyDecision, PolicyResult, SignInFlow

# --- API Router (/api/v1/auth) ---

api_router = APIRouter(prefix="/api/v1/auth", tags=["Auth API"])


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    repeat_password: str = Field(alias="repeatPassword")

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.repeat_password:
            raise ValueError("Les mots de passe ne correspondent pas")
        return self


class SessionRequest(BaseModel):
    access_token: str = Field(alias="accessToken", min_length=1)
    flow: SignInFlow = SignInFlow.LOGIN


class ResetEmailRequest(BaseModel):
    email: EmailStr


def _policy_response(result: PolicyResult, response: Response):
    """
    ALLOWED -> 200 + cookie de session; NEEDS_SIGNUP -> 409; DENIED -> 401.
    Le message utilisateur est porté par le detail.
    """
    if result.decision is PolicyDecision.NEEDS_SIGNUP:
        raise HTTPException(status_code=409, detail=result.message)
    if not result.allowed:
        raise HTTPException(status_code=401, detail=result.message or "Identifiants invalides")
    if result.access_token:
        set_session_cookie(response, result.access_token)
    return result.to_dict()


@api_router.post("/login", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
async def api_login(req: LoginRequest, response: Response, profiles: CustomerProfiles = Depends(get_profiles),
                    state: StateService = Depends(get_session_state)):
    """Connexion email/mot de passe; le profil client doit déjà exister."""
    dialog = LoginDialog(state, profiles)
    result = await dialog.login_with_email(req.email, req.password)
    return _policy_response(result, response)


@api_router.post("/signup", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
async def api_signup(req: SignupRequest, response: Response, profiles: CustomerProfiles = Depends(get_profiles),
                     state: StateService = Depends(get_session_state)):
    """Inscription puis connexion; crée le profil client {createdOn} s'il manque."""
    dialog = LoginDialog(state, profiles)
    dialog.toggle(DialogView.SIGNUP)
    result = await dialog.signup_with_email(req.email, req.password)
    return _policy_response(result, response)


@api_router.get("/providers/{provider}")
async def api_provider_url(provider: str, profiles: CustomerProfiles = Depends(get_profiles),
                           state: StateService = Depends(get_session_state)):
    """URL de connexion OAuth; le front y redirige puis revient sur /session avec le token."""
    try:
        url = await run_in_threadpool(LoginDialog(state, profiles).provider_url, provider)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception:
        raise HTTPException(status_code=502, detail="Fournisseur indisponible")
    return {"url": url}


@api_router.post("/session")
async def api_session(req: SessionRequest, response: Response, profiles: CustomerProfiles = Depends(get_profiles),
                      state: StateService = Depends(get_session_state)):
    """Fin d'un parcours fournisseur: valide le token reçu selon le parcours (login/signup)."""
    dialog = LoginDialog(state, profiles)
    dialog.toggle(DialogView.SIGNUP if req.flow is SignInFlow.SIGNUP else DialogView.LOGIN)
    result = await dialog.complete_provider_sign_in(req.access_token)
    return _policy_response(result, response)


@api_router.post("/reset", dependencies=[Depends(optional_rate_limit(times=3, seconds=60))])
async def api_reset_password(req: ResetEmailRequest, profiles: CustomerProfiles = Depends(get_profiles),
                             state: StateService = Depends(get_session_state)):
    res = await run_in_threadpool(LoginDialog(state, profiles).reset_password, req.email)
    if not res.success:
        raise HTTPException(status_code=400, detail=res.error or "Envoi impossible")
    return {"ok": True}


@api_router.post("/logout")
async def api_logout(request: Request, response: Response, state: StateService = Depends(get_session_state)):
    await run_in_threadpool(auth_service.sign_out, get_access_token(request))
    state.sign_out()
    clear_session_cookie(response)
    return {"ok": True}
