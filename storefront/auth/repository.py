from typing import Any, Dict, Optional
from storefront.infra import supabase_client

# --- Auth (supabase.auth.*) ---

def auth_sign_in_password(email: str, password: str):
    """Wrapper Supabase Auth: connexion par email/mot de passe (GoTrue)."""
    client = supabase_client.get_auth_supabase()
    return client.auth.sign_in_with_password({"email": email, "password": password})

def auth_sign_up_account(email: str, password: str, options_data: Optional[Dict[str, Any]] = None):
    """Wrapper Supabase Auth: création d'un compte email/mot de passe."""
    client = supabase_client.get_auth_supabase()
    credentials: Dict[str, Any] = {"email": email, "password": password}
    if options_data:
        credentials["options"] = {"data": options_data}
    return client.auth.sign_up(credentials)

def auth_provider_url(provider: str, redirect_to: str) -> str:
    """Wrapper Supabase Auth: URL de connexion OAuth (google, facebook, twitter)."""
    client = supabase_client.get_auth_supabase()
    res = client.auth.sign_in_with_oauth({"provider": provider, "options": {"redirect_to": redirect_to}})
    return getattr(res, "url", None) or (res.get("url") if isinstance(res, dict) else "")

def auth_send_reset_password(email: str, redirect_to: str):
    """Wrapper Supabase Auth: envoi d'un email de reset avec redirection."""
    client = supabase_client.get_supabase()
    return client.auth.reset_password_for_email(email, options={"redirect_to": redirect_to})

def auth_sign_out(access_token: str) -> None:
    """Révoque la session côté GoTrue (admin API, clé de service)."""
    client = supabase_client.get_service_supabase()
    client.auth.admin.sign_out(access_token)

def get_user_from_access_token(access_token: str):
    """Récupère l'utilisateur GoTrue associé à un access token (None si invalide)."""
    res = supabase_client.get_supabase().auth.get_user(access_token)
    return getattr(res, "user", None)
