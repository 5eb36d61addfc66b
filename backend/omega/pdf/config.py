"""Configuration spécifique au module PDF.

Utilise Pydantic BaseSettings pour permettre la surcharge par
des variables d'environnement (préfixe PDF_).
"""
from typing import Optional

from pydantic_settings import BaseSettings

class PDFSettings(BaseSettings):
    """Paramètres de configuration pour la génération de PDF."""

    # Largeur fixe (points) à laquelle les exports sont mis en page avant mise à l'échelle
    RENDER_WIDTH: float = 1100.0
    PAGE_MARGIN: float = 28.0
    # Dossier des fichiers temporaires (None: dossier temporaire du système)
    TMP_PDF_DIR: Optional[str] = None

    # Thème sombre explicite des exports
    THEME_BACKGROUND_HEX: str = "#1f2937"
    THEME_HEADER_HEX: str = "#111827"
    THEME_TEXT_HEX: str = "#f9fafb"
    THEME_BORDER_HEX: str = "#374151"

    # Facture imprimable
    PRIMARY_COLOR_HEX: str = "#1f2937"
    COMPANY_TAGLINE: str = "Fabricant français depuis 1996"
    FOOTER_TEXT: str = (
        "Le vendeur reste propriétaire des biens vendus jusqu'au paiement complet de leur prix."
    )

    class Config:
        env_prefix = "PDF_"
        env_file = '.env'
        env_file_encoding = 'utf-8'
        extra = 'ignore'

# Instance globale unique des paramètres
pdf_settings = PDFSettings()
