"""
Tests du générateur ReportLab (mise à l'échelle, fichiers temporaires, facture).
"""
from datetime import date, datetime
from decimal import Decimal

import pytest

from omega.pdf.config import PDFSettings
from omega.pdf.domain.exceptions import PDFGenerationException
from omega.pdf.domain.generator import DocumentSnapshot
from omega.pdf.infrastructure.reportlab_generator import ReportLabPDFGenerator, best_fit


@pytest.fixture
def tmp_settings(tmp_path) -> PDFSettings:
    return PDFSettings(TMP_PDF_DIR=str(tmp_path / "exports"))

@pytest.fixture
def snapshot() -> DocumentSnapshot:
    return DocumentSnapshot(
        title="Devis DEV-00004",
        subtitle_lines=["Client : Hôtel du Port"],
        columns=["Description", "Qté", "Total HT"],
        rows=[["Chaise <terrasse> & co", "4", "200.00 €"]],
        summary_lines=["Total TTC : 240.00 €"],
    )


def test_best_fit_shrinks_wide_content():
    scale, width, height = best_fit(1100, 400, 786, 500)
    assert scale == pytest.approx(786 / 1100)
    assert width == pytest.approx(786)
    assert height == pytest.approx(400 * 786 / 1100)

def test_best_fit_limited_by_height():
    scale, width, height = best_fit(500, 2000, 800, 500)
    assert scale == pytest.approx(0.25)
    assert (width, height) == (pytest.approx(125), pytest.approx(500))

def test_best_fit_enlarges_small_content():
    scale, _, _ = best_fit(100, 100, 800, 500)
    assert scale == pytest.approx(5)

@pytest.mark.parametrize("width, height", [(0, 100), (100, 0), (-1, 10)])
def test_best_fit_rejects_empty_content(width, height):
    with pytest.raises(ValueError):
        best_fit(width, height, 800, 500)

@pytest.mark.asyncio
async def test_snapshot_export_removes_temporary_file(tmp_settings, snapshot, tmp_path):
    pdf_bytes = await ReportLabPDFGenerator(settings=tmp_settings).render_snapshot_pdf(snapshot)
    assert pdf_bytes.startswith(b"%PDF")
    assert list((tmp_path / "exports").iterdir()) == []

@pytest.mark.asyncio
async def test_snapshot_export_failure_removes_temporary_file(tmp_settings, snapshot, tmp_path, mocker):
    generator = ReportLabPDFGenerator(settings=tmp_settings)
    mocker.patch.object(generator, "_draw_snapshot", side_effect=RuntimeError("canvas indisponible"))

    with pytest.raises(PDFGenerationException) as exc_info:
        await generator.render_snapshot_pdf(snapshot)
    assert "canvas indisponible" in exc_info.value.message
    assert list((tmp_path / "exports").iterdir()) == []

@pytest.mark.asyncio
async def test_invoice_pdf_is_generated():
    invoice_data = {
        "invoice": {
            "invoice_number": "FAC-00012",
            "customer_name": "Atelier Martin",
            "customer_company": "SARL Atelier Martin",
            "customer_address": {"street": "3 rue Neuve", "postal_code": "34000", "city": "Montpellier"},
            "customer_email": "contact@atelier-martin.fr",
            "created_at": datetime(2026, 3, 2, 9, 30),
            "due_date": date(2026, 4, 1),
            "paid_at": datetime(2026, 3, 5, 14, 0),
            "items": [
                {"description": "Table de réunion", "quantity": 1, "unit_price_ht": Decimal("100.00"), "total_ht": Decimal("100.00")},
            ],
            "subtotal_ht": Decimal("100.00"),
            "tax_amount": Decimal("20.00"),
            "total_ttc": Decimal("120.00"),
            "notes": "Merci pour votre confiance.",
        },
        "payment_status": {
            "amount_paid": Decimal("120.00"),
            "total_refunded": Decimal("0.00"),
            "net_to_pay": Decimal("0.00"),
            "is_fully_paid": True,
            "is_refunded": False,
            "has_partial_refund": False,
        },
        "seller": {
            "company_name": "OMEGA",
            "company_legal_form": "SARL",
            "company_address": "ZA du Mas",
            "company_postal_code": "34130",
            "company_city": "Mauguio",
            "siret": "12345678900012",
            "bank_details": {"iban": "FR7630006000011234567890189", "bic": "AGRIFRPP"},
            "legal_mentions": "Pénalités de retard : trois fois le taux d'intérêt légal.",
        },
    }

    pdf_bytes = await ReportLabPDFGenerator().generate_invoice_pdf(invoice_data)
    assert pdf_bytes.startswith(b"%PDF")

def test_payment_banner():
    generator = ReportLabPDFGenerator()
    assert generator._payment_banner({"is_refunded": True, "is_fully_paid": True}, None) == ["FACTURE REMBOURSÉE"]
    assert generator._payment_banner({"is_fully_paid": True}, datetime(2026, 3, 5)) == [
        "FACTURE ACQUITTÉE",
        "Facture acquittée le : 05/03/2026",
    ]
    assert generator._payment_banner({"has_partial_refund": True}, None) == ["PARTIELLEMENT REMBOURSÉE"]
    assert generator._payment_banner({}, None) == []
