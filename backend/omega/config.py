import logging
from typing import Optional, List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Charger les variables d'environnement AVANT de définir la classe Settings
load_dotenv()

DEFAULT_JWT_SECRET = "remplacer_par_une_vraie_cle_secrete_forte"

class Settings(BaseSettings):
    # --- Base de Données ---
    # Si DATABASE_URL est défini il prime sur les composants POSTGRES_*
    DATABASE_URL: Optional[str] = None
    POSTGRES_DB: str = "omega"
    POSTGRES_USER: str = "omega"
    POSTGRES_PASSWORD: str = ""
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    DB_ECHO_LOG: bool = False

    # --- Pagination ---
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 200

    # --- Application ---
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = [
        "https://omega-fx.fr",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    # --- JWT (session admin émise par le fournisseur d'identité) ---
    JWT_SECRET_KEY: str = DEFAULT_JWT_SECRET
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60
    ADMIN_ROLE: str = "admin"

    # --- Stripe ---
    STRIPE_SECRET_KEY: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com"
    STRIPE_TIMEOUT_SECONDS: float = 15.0

    class Config:
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = 'ignore'

    @property
    def database_url(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@"
            f"{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

settings = Settings()

if settings.JWT_SECRET_KEY == DEFAULT_JWT_SECRET:
    logger.warning("La variable JWT_SECRET_KEY utilise la valeur par défaut. Veuillez définir une clé secrète forte.")
if not settings.STRIPE_SECRET_KEY:
    logger.warning("STRIPE_SECRET_KEY non définie: les remboursements Stripe échoueront.")

logger.info(f"Configuration chargée: DB={settings.POSTGRES_DB}@{settings.POSTGRES_HOST}, Stripe={settings.STRIPE_API_BASE}")
