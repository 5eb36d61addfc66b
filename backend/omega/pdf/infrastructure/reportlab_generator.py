import io
import logging
import os
import tempfile
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from reportlab.pdfgen import canvas
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Table, TableStyle

from omega.pdf.config import PDFSettings, pdf_settings
from omega.pdf.domain.exceptions import PDFGenerationException
from omega.pdf.domain.generator import AbstractPDFGenerator, DocumentSnapshot

logger = logging.getLogger(__name__)

# Hauteur disponible "infinie" pour mesurer le tableau avant mise à l'échelle
MEASURE_HEIGHT = 100000.0
HEADER_TITLE_SIZE = 16
HEADER_LINE_SIZE = 10
HEADER_LINE_HEIGHT = 14
LEGAL_FORM_LABELS = {"SARL": "Société à responsabilité limitée (SARL)"}


def best_fit(content_width: float, content_height: float,
             available_width: float, available_height: float) -> Tuple[float, float, float]:
    """Échelle conservant les proportions pour que le contenu tienne dans la zone.

    Retourne (échelle, largeur dessinée, hauteur dessinée).
    """
    if content_width <= 0 or content_height <= 0:
        raise ValueError("Dimensions du contenu invalides.")
    scale = min(available_width / content_width, available_height / content_height)
    return scale, content_width * scale, content_height * scale


def _money(value) -> str:
    return f"{Decimal(str(value or 0)):.2f} €"


def _date_fr(value) -> str:
    if not value:
        return ""
    return value.strftime("%d/%m/%Y")


class ReportLabPDFGenerator(AbstractPDFGenerator):
    """Implémentation du générateur PDF utilisant ReportLab."""

    def __init__(self, settings: Optional[PDFSettings] = None):
        self.settings = settings or pdf_settings
        logger.info("[ReportLabPDFGenerator] Initialisé.")

    # --- Export à largeur fixe, thème sombre, ajusté en paysage ---

    def _build_snapshot_table(self, snapshot: DocumentSnapshot) -> Table:
        s = self.settings
        text_color = colors.HexColor(s.THEME_TEXT_HEX)
        cell_style = ParagraphStyle(name="SnapshotCell", fontName="Helvetica", fontSize=9, leading=11, textColor=text_color)
        head_style = ParagraphStyle(name="SnapshotHead", parent=cell_style, fontName="Helvetica-Bold")

        data = [[Paragraph(escape(col), head_style) for col in snapshot.columns]]
        for row in snapshot.rows:
            data.append([Paragraph(escape(str(cell)), cell_style) for cell in row])
        for line in snapshot.summary_lines:
            summary = [""] * len(snapshot.columns)
            summary[-1] = Paragraph(f"<b>{escape(line)}</b>", cell_style)
            data.append(summary)

        col_width = s.RENDER_WIDTH / max(1, len(snapshot.columns))
        table = Table(data, colWidths=[col_width] * len(snapshot.columns), repeatRows=1)
        table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, -1), colors.HexColor(s.THEME_BACKGROUND_HEX)),
            ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor(s.THEME_HEADER_HEX)),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor(s.THEME_BORDER_HEX)),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('TOPPADDING', (0, 0), (-1, -1), 6),
            ('BOTTOMPADDING', (0, 0), (-1, -1), 6),
        ]))
        return table

    def _draw_snapshot(self, path: str, snapshot: DocumentSnapshot, table: Table, size: Tuple[float, float]) -> None:
        s = self.settings
        page_width, page_height = landscape(A4)
        margin = s.PAGE_MARGIN
        header_height = HEADER_LINE_HEIGHT * (1 + len(snapshot.subtitle_lines)) + HEADER_LINE_HEIGHT

        scale, drawn_width, drawn_height = best_fit(
            size[0], size[1],
            page_width - 2 * margin,
            page_height - 2 * margin - header_height,
        )
        logger.debug(f"[PDFGen] Export '{snapshot.title}': {size[0]:.0f}x{size[1]:.0f} pt, échelle {scale:.3f}")

        pdf = canvas.Canvas(path, pagesize=landscape(A4))
        pdf.setTitle(snapshot.title)
        text_y = page_height - margin - HEADER_TITLE_SIZE
        pdf.setFillColor(colors.black)
        pdf.setFont("Helvetica-Bold", HEADER_TITLE_SIZE)
        pdf.drawString(margin, text_y, snapshot.title)
        pdf.setFont("Helvetica", HEADER_LINE_SIZE)
        for line in snapshot.subtitle_lines:
            text_y -= HEADER_LINE_HEIGHT
            pdf.drawString(margin, text_y, line)

        x = (page_width - drawn_width) / 2
        y = margin + (page_height - 2 * margin - header_height - drawn_height) / 2
        pdf.saveState()
        pdf.translate(x, y)
        pdf.scale(scale, scale)
        table.drawOn(pdf, 0, 0)
        pdf.restoreState()
        pdf.showPage()
        pdf.save()

    async def render_snapshot_pdf(self, snapshot: DocumentSnapshot) -> bytes:
        logger.info(f"[PDFGen] Export PDF '{snapshot.title}' ({len(snapshot.rows)} ligne(s))")
        tmp_dir = self.settings.TMP_PDF_DIR
        if tmp_dir:
            os.makedirs(tmp_dir, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix="omega-export-", suffix=".pdf", dir=tmp_dir)
        os.close(fd)
        try:
            table = self._build_snapshot_table(snapshot)
            size = table.wrap(self.settings.RENDER_WIDTH, MEASURE_HEIGHT)
            self._draw_snapshot(tmp_path, snapshot, table, size)
            with open(tmp_path, "rb") as f:
                pdf_bytes = f.read()
        except Exception as e:
            logger.error(f"[PDFGen] Erreur export '{snapshot.title}': {e}", exc_info=True)
            raise PDFGenerationException(f"Erreur lors de l'export: {e}", original_exception=e)
        finally:
            # Le fichier temporaire ne survit jamais à l'export, succès ou échec
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        logger.info(f"[PDFGen] Export '{snapshot.title}' généré ({len(pdf_bytes)} bytes).")
        return pdf_bytes

    # --- Facture imprimable ---

    def _seller_block(self, seller: Dict[str, Any], style) -> Paragraph:
        lines = [f"<b>{escape(seller.get('company_name') or '')}</b>"]
        legal_form = seller.get("company_legal_form")
        if legal_form:
            lines.append(escape(LEGAL_FORM_LABELS.get(legal_form, legal_form)))
        lines.append(escape(seller.get("company_address") or ""))
        lines.append(escape(f"{seller.get('company_postal_code') or ''} {seller.get('company_city') or ''}".strip()))
        for label, key in (("Tél", "company_phone"), ("Email", "company_email"), ("SIRET", "siret"), ("N° TVA", "vat_number")):
            if seller.get(key):
                lines.append(f"{label} : {escape(str(seller[key]))}")
        return Paragraph("<br/>".join(lines), style)

    def _customer_block(self, invoice: Dict[str, Any], style) -> Paragraph:
        lines = [f"<b>{escape(invoice.get('customer_name') or '')}</b>"]
        if invoice.get("customer_company"):
            lines.append(escape(invoice["customer_company"]))
        address = invoice.get("billing_address") or invoice.get("customer_address") or {}
        for key in ("street", "line1", "address", "postal_code", "city", "country"):
            if address.get(key):
                lines.append(escape(str(address[key])))
        if invoice.get("customer_email"):
            lines.append(escape(invoice["customer_email"]))
        if invoice.get("customer_siret"):
            lines.append(f"SIREN : {escape(invoice['customer_siret'])}")
        if invoice.get("customer_vat_number"):
            lines.append(f"N° TVA : {escape(invoice['customer_vat_number'])}")
        return Paragraph("<br/>".join(lines), style)

    def _payment_banner(self, payment_status: Dict[str, Any], paid_at) -> List[str]:
        if payment_status.get("is_refunded"):
            return ["FACTURE REMBOURSÉE"]
        if payment_status.get("is_fully_paid"):
            banner = ["FACTURE ACQUITTÉE"]
            if paid_at:
                banner.append(f"Facture acquittée le : {_date_fr(paid_at)}")
            return banner
        if payment_status.get("has_partial_refund"):
            return ["PARTIELLEMENT REMBOURSÉE"]
        return []

    async def generate_invoice_pdf(self, invoice_data: Dict[str, Any]) -> bytes:
        invoice = invoice_data["invoice"]
        seller = invoice_data.get("seller", {})
        payment_status = invoice_data.get("payment_status", {})
        invoice_number = invoice.get("invoice_number", "N/A")
        logger.info(f"[PDFGen] Génération PDF facture {invoice_number}")

        buffer = io.BytesIO()
        doc = SimpleDocTemplate(buffer, pagesize=A4, title=f"Facture {invoice_number}")
        elements = []
        styles = getSampleStyleSheet()
        primary = colors.HexColor(self.settings.PRIMARY_COLOR_HEX)

        title_style = ParagraphStyle(name="InvoiceTitle", parent=styles["Heading1"], textColor=primary, alignment=2)
        normal_style = styles["Normal"]
        small_style = ParagraphStyle(name="Small", parent=normal_style, fontSize=8, textColor=colors.gray)
        section_style = ParagraphStyle(name="Section", parent=normal_style, fontName="Helvetica-Bold", textColor=colors.gray)
        bold_style = ParagraphStyle(name="Bold", parent=normal_style, fontName="Helvetica-Bold")
        footer_style = ParagraphStyle(name="Footer", fontSize=8, textColor=colors.gray, alignment=1)

        # 1. En-tête
        header = Table([[
            Paragraph(f"<b>{escape(seller.get('company_name') or 'OMEGA')}</b><br/>{escape(self.settings.COMPANY_TAGLINE)}", normal_style),
            Paragraph("FACTURE", title_style),
        ]], colWidths=[3.5 * inch, 3.5 * inch])
        elements.append(header)
        meta = [
            f"N° : <b>{escape(invoice_number)}</b>",
            f"Date : {_date_fr(invoice.get('created_at'))}",
        ]
        if invoice.get("due_date"):
            meta.append(f"Échéance : {_date_fr(invoice['due_date'])}")
        elements.append(Paragraph("<br/>".join(meta), ParagraphStyle(name="Meta", parent=normal_style, alignment=2)))
        elements.append(Spacer(1, 0.3 * inch))

        # 2. Vendeur / client
        parties = Table([
            [Paragraph("VENDEUR", section_style), Paragraph("FACTURÉ À", section_style)],
            [self._seller_block(seller, normal_style), self._customer_block(invoice, normal_style)],
        ], colWidths=[3.5 * inch, 3.5 * inch])
        parties.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
        elements.append(parties)
        elements.append(Spacer(1, 0.3 * inch))

        # 3. Lignes
        table_data = [[
            Paragraph("<b>Description</b>", normal_style), "Qté", "P.U. HT", "Total HT",
        ]]
        for item in invoice.get("items", []):
            table_data.append([
                Paragraph(escape(item.get("description", "")), normal_style),
                str(item.get("quantity", 0)),
                _money(item.get("unit_price_ht")),
                _money(item.get("total_ht")),
            ])
        lines_table = Table(table_data, colWidths=[3.8 * inch, 0.7 * inch, 1.2 * inch, 1.3 * inch], repeatRows=1)
        lines_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), primary),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (1, 0), (1, -1), 'CENTER'),
            ('ALIGN', (2, 0), (-1, -1), 'RIGHT'),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
            ('LINEBELOW', (0, 0), (-1, -1), 0.5, colors.lightgrey),
            ('BOTTOMPADDING', (0, 0), (-1, 0), 8),
        ]))
        elements.append(lines_table)
        elements.append(Spacer(1, 0.2 * inch))

        # 4. Totaux et état de paiement
        totals = [
            ["Sous-total HT", _money(invoice.get("subtotal_ht"))],
            ["TVA", _money(invoice.get("tax_amount"))],
            [Paragraph("<b>TOTAL TTC</b>", bold_style), Paragraph(f"<b>{_money(invoice.get('total_ttc'))}</b>", bold_style)],
        ]
        if payment_status.get("amount_paid"):
            totals.append(["Montant Payé", f"- {_money(payment_status['amount_paid'])}"])
        if payment_status.get("total_refunded"):
            totals.append(["Montant Remboursé", f"+ {_money(payment_status['total_refunded'])}"])
        net_label = "REMBOURSÉE" if payment_status.get("is_refunded") else _money(payment_status.get("net_to_pay"))
        totals.append([Paragraph("<b>NET À PAYER</b>", bold_style), Paragraph(f"<b>{net_label}</b>", bold_style)])
        totals_table = Table(totals, colWidths=[2 * inch, 1.5 * inch], hAlign='RIGHT')
        totals_table.setStyle(TableStyle([
            ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
            ('LINEABOVE', (0, -1), (-1, -1), 1, primary),
        ]))
        elements.append(totals_table)
        for banner_line in self._payment_banner(payment_status, invoice.get("paid_at")):
            elements.append(Paragraph(f"<b>{escape(banner_line)}</b>", ParagraphStyle(name="Banner", parent=bold_style, alignment=2)))
        elements.append(Spacer(1, 0.3 * inch))

        # 5. Coordonnées bancaires et mentions
        bank = seller.get("bank_details") or {}
        if bank.get("iban"):
            bank_lines = [f"IBAN : {escape(bank['iban'])}"]
            if bank.get("bic"):
                bank_lines.append(f"BIC : {escape(bank['bic'])}")
            if bank.get("bank_name"):
                bank_lines.append(escape(bank["bank_name"]))
            elements.append(Paragraph("<b>Coordonnées bancaires</b><br/>" + "<br/>".join(bank_lines), normal_style))
            elements.append(Spacer(1, 0.2 * inch))
        if invoice.get("notes"):
            elements.append(Paragraph(escape(invoice["notes"]), normal_style))
            elements.append(Spacer(1, 0.1 * inch))
        legal = invoice.get("legal_mentions") or seller.get("legal_mentions")
        if legal:
            elements.append(Paragraph(escape(legal), small_style))

        def add_footer(pdf_canvas, doc):
            pdf_canvas.saveState()
            footer = Paragraph(escape(self.settings.FOOTER_TEXT), footer_style)
            w, h = footer.wrap(doc.width, doc.bottomMargin)
            footer.drawOn(pdf_canvas, doc.leftMargin, h)
            pdf_canvas.restoreState()

        try:
            doc.build(elements, onFirstPage=add_footer, onLaterPages=add_footer)
            pdf_bytes = buffer.getvalue()
        except Exception as e:
            logger.error(f"[PDFGen] Erreur ReportLab build() pour facture {invoice_number}: {e}", exc_info=True)
            raise PDFGenerationException(f"Erreur lors de la construction du PDF: {e}", original_exception=e)
        finally:
            buffer.close()
        logger.info(f"[PDFGen] PDF facture {invoice_number} généré ({len(pdf_bytes)} bytes).")
        return pdf_bytes
