# jerseyshop.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=False)

"""
Configuration centrale de la boutique.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Expose l'URL de base de données (SQLAlchemy) et le secret JWT
- Normalise et expose les clés des trois prestataires de paiement (Stripe, PayPal, Square)
- Sécurité cookies, CORS/hosts, délais réseau et fenêtre de réconciliation
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

# Base de données (Postgres en prod, SQLite par défaut en local)
DATABASE_URL = _clean_env(os.getenv("DATABASE_URL") or f"sqlite:///{BASE_DIR / 'jerseyshop.db'}")
# Heroku/Render exposent encore parfois postgres://, refusé par SQLAlchemy 2
if DATABASE_URL.startswith("postgres://"):
    DATABASE_URL = "postgresql://" + DATABASE_URL[len("postgres://"):]
DB_ECHO = (os.getenv("DB_ECHO", "false").lower() == "true")

# Jetons d'accès (émis par le service d'auth, vérifiés ici)
JWT_SECRET = _clean_env(os.getenv("JWT_SECRET") or "")
JWT_ALGORITHM = _clean_env(os.getenv("JWT_ALGORITHM") or "HS256")

# Devise unique de la boutique (codes ISO en minuscules pour Stripe)
CURRENCY = _clean_env(os.getenv("CURRENCY") or "usd").lower()

# Stripe: clé privée et secret webhook
STRIPE_SECRET_KEY = _clean_env(os.getenv("STRIPE_SECRET_KEY") or "")
STRIPE_WEBHOOK_SECRET = _clean_env(os.getenv("STRIPE_WEBHOOK_SECRET") or "")

# PayPal: identifiants OAuth, mode et identifiant du webhook (sert à la vérification)
PAYPAL_CLIENT_ID = _clean_env(os.getenv("PAYPAL_CLIENT_ID") or "")
PAYPAL_CLIENT_SECRET = _clean_env(os.getenv("PAYPAL_CLIENT_SECRET") or "")
PAYPAL_MODE = _clean_env(os.getenv("PAYPAL_MODE") or "sandbox").lower()
PAYPAL_WEBHOOK_ID = _clean_env(os.getenv("PAYPAL_WEBHOOK_ID") or "")
PAYPAL_API_BASE = (
    "https://api-m.paypal.com" if PAYPAL_MODE == "production" else "https://api-m.sandbox.paypal.com"
)

# Square: jeton d'accès, environnement, location et clé de signature webhook
SQUARE_ACCESS_TOKEN = _clean_env(os.getenv("SQUARE_ACCESS_TOKEN") or "")
SQUARE_ENVIRONMENT = _clean_env(os.getenv("SQUARE_ENVIRONMENT") or "sandbox").lower()
SQUARE_LOCATION_ID = _clean_env(os.getenv("SQUARE_LOCATION_ID") or "")
SQUARE_WEBHOOK_SIGNATURE_KEY = _clean_env(os.getenv("SQUARE_WEBHOOK_SIGNATURE_KEY") or "")
# URL de notification déclarée chez Square (préfixe du corps signé)
SQUARE_WEBHOOK_URL = _clean_env(os.getenv("SQUARE_WEBHOOK_URL") or "")
SQUARE_VERSION = _clean_env(os.getenv("SQUARE_VERSION") or "2024-10-17")
SQUARE_API_BASE = (
    "https://connect.squareup.com" if SQUARE_ENVIRONMENT == "production" else "https://connect.squareupsandbox.com"
)

# Appels HTTP sortants vers PayPal/Square (secondes)
PROVIDER_HTTP_TIMEOUT = _int_env("PROVIDER_HTTP_TIMEOUT", 10)

# Paiements restés 'pending' au-delà de ce délai: candidats au balayage de réconciliation
PAYMENT_RECONCILE_AFTER_MINUTES = _int_env("PAYMENT_RECONCILE_AFTER_MINUTES", 30)

# Cookies / sécurité
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")

# CORS (dev)
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver").split(",") if h.strip()]

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000")

# Redirections PayPal par défaut (approbation / annulation)
PAYPAL_RETURN_URL = _clean_env(os.getenv("PAYPAL_RETURN_URL") or f"{BASE_URL}/checkout/paypal/return")
PAYPAL_CANCEL_URL = _clean_env(os.getenv("PAYPAL_CANCEL_URL") or f"{BASE_URL}/checkout/paypal/cancel")

# Création du schéma au démarrage (dev/tests); en prod les migrations s'en chargent
DB_CREATE_ALL = (os.getenv("DB_CREATE_ALL", "0").lower() in ("1", "true", "yes"))
