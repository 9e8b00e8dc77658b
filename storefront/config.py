# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale du storefront.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe), sécurité cookies, CORS/hosts
- Expose la langue des collections, les routes de fin de checkout et l'endpoint price-intent
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

# Supabase: URL et clés (anon/service)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# Stripe: clés et devise des PaymentIntents
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "eur").lower()

# Langue des collections produits/catégories (products_<lang>, categories_<lang>)
LANG = _clean_env(os.getenv("STOREFRONT_LANG") or "en")

# Cookies / CORS / hosts
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")

# Endpoint price-intent externe: POST {orderItems, lang} -> {clientSecret}
# Vide: le service price-intent de ce même serveur est appelé directement (pas d'aller-retour HTTP)
REST_API_URL = _clean_env(os.getenv("REST_API_URL") or "").rstrip("/")
PRICE_INTENT_TIMEOUT = float(os.getenv("PRICE_INTENT_TIMEOUT", "10"))

# Redirection OAuth (popup fournisseur) et reset mot de passe
OAUTH_REDIRECT_URL = _clean_env(os.getenv("OAUTH_REDIRECT_URL") or f"{BASE_URL}/auth/callback")
RESET_REDIRECT_URL = _clean_env(os.getenv("RESET_REDIRECT_URL") or f"{BASE_URL}/auth/reset")

# Routes terminales du checkout
CHECKOUT_SUCCESS_ROUTE = os.getenv("CHECKOUT_SUCCESS_ROUTE", "checkout/success")
CHECKOUT_ERROR_ROUTE = os.getenv("CHECKOUT_ERROR_ROUTE", "checkout/error")

# Durée de vie (secondes) d'un checkout sans activité avant sa libération
CHECKOUT_TTL = float(os.getenv("CHECKOUT_TTL", "1800"))

# Durée de vie (secondes) d'une projection d'état de session sans activité
STATE_SESSION_TTL = float(os.getenv("STATE_SESSION_TTL", "86400"))

# Intervalle de rafraîchissement des abonnements documents (secondes)
DOCUMENT_POLL_INTERVAL = float(os.getenv("DOCUMENT_POLL_INTERVAL", "2"))
