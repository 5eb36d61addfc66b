from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class DocumentSnapshot:
    """Modèle d'un document à exporter tel qu'affiché: en-tête et tableau."""
    title: str
    columns: List[str]
    rows: List[List[str]]
    subtitle_lines: List[str] = field(default_factory=list)
    summary_lines: List[str] = field(default_factory=list)


class AbstractPDFGenerator(ABC):
    """Interface abstraite pour un générateur de documents PDF.
    Approche orientée données, l'implémentation gère la mise en page.
    """

    @abstractmethod
    async def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        """Génère la facture imprimable (A4 portrait).

        Args:
            invoice_data: Dictionnaire contenant la facture, ses lignes, son état
                          de paiement et les paramètres du vendeur.

        Raises:
            PDFGenerationException: Si une erreur survient durant la génération.
        """
        raise NotImplementedError

    @abstractmethod
    async def render_snapshot_pdf(self, snapshot: DocumentSnapshot) -> bytes:
        """Met en page le document à largeur fixe puis l'ajuste sur une page A4 paysage.

        Raises:
            PDFGenerationException: Si une erreur survient durant la génération.
        """
        raise NotImplementedError
