"""Utilitaires monétaires partagés par les devis et les factures."""
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Iterable, Mapping, Optional, Tuple, Type

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Tolérance d'arrondi admise entre la somme des lignes et les totaux du document
ROUNDING_TOLERANCE = Decimal("0.01")


def to_money(value) -> Decimal:
    """Convertit un montant en Decimal arrondi au centime (arrondi commercial)."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def to_cents(value) -> int:
    return int(to_money(value) * 100)


def from_cents(cents: int) -> Decimal:
    return to_money(Decimal(cents) / 100)


def utcnow() -> datetime:
    """Horodatage UTC avec fuseau (colonnes UTCDateTime)."""
    return datetime.now(timezone.utc)


def day_bounds(date_from: Optional[date], date_to: Optional[date]) -> Tuple[Optional[datetime], Optional[datetime]]:
    """Bornes inclusives: début du premier jour, fin du dernier jour."""
    start = datetime.combine(date_from, time.min, tzinfo=timezone.utc) if date_from else None
    end = datetime.combine(date_to, time.max, tzinfo=timezone.utc) if date_to else None
    return start, end


@dataclass(frozen=True)
class LineTotals:
    total_ht: Decimal
    total_ttc: Decimal


@dataclass(frozen=True)
class DocumentTotals:
    subtotal_ht: Decimal
    tax_amount: Decimal
    total_ttc: Decimal


def compute_line_totals(quantity: int, unit_price_ht, tax_rate) -> LineTotals:
    total_ht = to_money(Decimal(quantity) * Decimal(str(unit_price_ht)))
    total_ttc = to_money(total_ht * (Decimal(1) + Decimal(str(tax_rate)) / Decimal(100)))
    return LineTotals(total_ht=total_ht, total_ttc=total_ttc)


def compute_document_totals(lines: Iterable[LineTotals]) -> DocumentTotals:
    """Agrège les lignes; total_ttc est toujours subtotal_ht + tax_amount."""
    subtotal = ZERO
    tax = ZERO
    for line in lines:
        subtotal += line.total_ht
        tax += line.total_ttc - line.total_ht
    subtotal = to_money(subtotal)
    tax = to_money(tax)
    return DocumentTotals(subtotal_ht=subtotal, tax_amount=tax, total_ttc=subtotal + tax)


def totals_are_consistent(subtotal_ht, tax_amount, total_ttc) -> bool:
    return abs(to_money(subtotal_ht) + to_money(tax_amount) - to_money(total_ttc)) <= ROUNDING_TOLERANCE


def price_document_lines(lines, item_cls, **extra) -> Tuple[list, DocumentTotals]:
    """Instancie les lignes (devis ou facture) avec leurs totaux recalculés."""
    items = []
    line_totals = []
    for position, line in enumerate(lines):
        totals = compute_line_totals(line.quantity, line.unit_price_ht, line.tax_rate)
        line_totals.append(totals)
        items.append(item_cls(
            description=line.description,
            quantity=line.quantity,
            unit_price_ht=to_money(line.unit_price_ht),
            tax_rate=line.tax_rate,
            total_ht=totals.total_ht,
            total_ttc=totals.total_ttc,
            sort_order=position,
            **extra,
        ))
    return items, compute_document_totals(line_totals)


def require_labels(labels: Mapping, enum_cls: Type[Enum], what: str) -> None:
    """Vérifié à l'import: chaque membre de l'énumération a son libellé d'affichage."""
    missing = [member.value for member in enum_cls if member not in labels]
    if missing:
        raise RuntimeError(f"Libellé manquant pour {what}: {', '.join(missing)}")
