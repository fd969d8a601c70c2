# storefront.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

"""
Configuration centrale du backend boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, Stripe, Shippo), CORS/hosts
- Expose la politique tarifaire (taxe, livraison offerte, colisage) et l'adresse d'expédition
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return int(raw) if raw else default
    except ValueError:
        return default

def _float_env(name: str, default: float) -> float:
    raw = _clean_env(os.getenv(name) or "")
    try:
        return float(raw) if raw else default
    except ValueError:
        return default

def _list_env(name: str, default: str) -> list[str]:
    return [x.strip() for x in (os.getenv(name) or default).split(",") if x.strip()]

# Supabase: URL et clés (anon/service)
# - SUPABASE_URL peut parfois être sans schéma: on préfixe en https:// si nécessaire
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# CORS / hosts
CORS_ORIGINS = _list_env("CORS_ORIGINS", "*")
ALLOWED_HOSTS = _list_env("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")

# Stripe: clé secrète, secret webhook et devise des PaymentIntents
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")
STRIPE_CURRENCY = _clean_env(os.getenv("STRIPE_CURRENCY") or "usd").lower()

# Shippo: agrégateur de tarifs/étiquettes
SHIPPO_API_KEY = _clean_env(os.getenv("SHIPPO_API_KEY") or "")
SHIPPO_API_URL = _clean_env(os.getenv("SHIPPO_API_URL") or "https://api.goshippo.com").rstrip("/")
SHIPPO_TIMEOUT = _float_env("SHIPPO_TIMEOUT", 15.0)

# Rate limiting (fastapi-limiter)
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")

# Adresse d'origine des colis (entrepôt)
WAREHOUSE_ADDRESS = {
    "name": _clean_env(os.getenv("COMPANY_NAME") or "Storefront"),
    "street1": _clean_env(os.getenv("WAREHOUSE_ADDRESS_LINE1") or "123 Main St"),
    "street2": _clean_env(os.getenv("WAREHOUSE_ADDRESS_LINE2") or ""),
    "city": _clean_env(os.getenv("WAREHOUSE_CITY") or "San Francisco"),
    "state": _clean_env(os.getenv("WAREHOUSE_STATE") or "CA"),
    "zip": _clean_env(os.getenv("WAREHOUSE_POSTAL_CODE") or "94105"),
    "country": _clean_env(os.getenv("WAREHOUSE_COUNTRY") or "US"),
    "phone": _clean_env(os.getenv("WAREHOUSE_PHONE") or "+1 555 123 4567"),
    "email": _clean_env(os.getenv("WAREHOUSE_EMAIL") or "shipping@example.com"),
}

# Tarification (montants en unités mineures: cents)
TAX_RATE = _float_env("TAX_RATE", 0.07)
FREE_SHIPPING_DOMESTIC_THRESHOLD = _int_env("FREE_SHIPPING_DOMESTIC_THRESHOLD", 7500)
FREE_SHIPPING_INTERNATIONAL_THRESHOLD = _int_env("FREE_SHIPPING_INTERNATIONAL_THRESHOLD", 15000)
FREE_SHIPPING_DOMESTIC_METHODS = _list_env("FREE_SHIPPING_DOMESTIC_METHODS", "usps_priority,usps_ground_advantage")
FREE_SHIPPING_INTERNATIONAL_METHODS = _list_env("FREE_SHIPPING_INTERNATIONAL_METHODS", "usps_priority_mail_international")

# Colisage: marge de volume appliquée aux colis multi-articles
PACKING_INEFFICIENCY = _float_env("PACKING_INEFFICIENCY", 1.2)
MIN_PARCEL_WEIGHT_KG = _float_env("MIN_PARCEL_WEIGHT_KG", 0.1)

# Écart entre montant autorisé et recalcul à la matérialisation: "flag" ou "reject"
AMOUNT_DRIFT_POLICY = _clean_env(os.getenv("AMOUNT_DRIFT_POLICY") or "flag").lower()

LOG_LEVEL = _clean_env(os.getenv("LOG_LEVEL") or "info").lower()

# Valeurs par défaut pour les produits sans poids/dimensions renseignés
DEFAULT_ITEM_WEIGHT_KG = _float_env("DEFAULT_ITEM_WEIGHT_KG", 0.5)
DEFAULT_ITEM_DIMENSIONS_CM = {"length": 10.0, "width": 10.0, "height": 10.0}
