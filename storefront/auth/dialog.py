"""
Dialogue connexion / inscription / reset.

Lie les pipelines Auth à un StateService: l'ouverture invalide la session courante,
chaque résultat de parcours passe par apply_policy() avant d'être rendu à l'appelant.
"""
from enum import Enum

from storefront.customers.repository import CustomerProfiles
from storefront.state.service import StateService
from . import service as auth_service
from .models import AuthResponse, PolicyResult, SignInFlow


class DialogView(str, Enum):
    LOGIN = "login"
    SIGNUP = "signup"
    RESET = "reset"


class LoginDialog:
    def __init__(self, state: StateService, profiles: CustomerProfiles):
        self.state = state
        self.profiles = profiles
        self.view = DialogView.LOGIN
        self.state.open_login()

    def toggle(self, view: DialogView) -> None:
        self.view = view

    @property
    def flow(self) -> SignInFlow:
        return SignInFlow.SIGNUP if self.view is DialogView.SIGNUP else SignInFlow.LOGIN

    def _apply(self, result: PolicyResult) -> PolicyResult:
        self.state.apply_policy(result)
        return result

    async def login_with_email(self, email: str, password: str) -> PolicyResult:
        return self._apply(await auth_service.login_with_email(email, password, self.profiles))

    async def signup_with_email(self, email: str, password: str) -> PolicyResult:
        return self._apply(await auth_service.signup_with_email(email, password, self.profiles))

    def provider_url(self, provider: str) -> str:
        return auth_service.provider_sign_in_url(provider)

    async def complete_provider_sign_in(self, access_token: str) -> PolicyResult:
        return self._apply(await auth_service.complete_sign_in(access_token, self.flow, self.profiles))

    def reset_password(self, email: str) -> AuthResponse:
        return auth_service.request_password_reset(email)
