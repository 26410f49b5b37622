"""
Cálculo de totales de comprobantes.

Cada ítem aporta cantidad x precio unitario. Los ítems con alícuota 0 suman
al importe exento; el resto suma al neto gravado y al IVA. Los importes se
redondean a centavos (mitad hacia arriba) al final, y el total se calcula
con las sumas sin redondear.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

CENTS = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def round_amount(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def _decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


@dataclass(frozen=True)
class InvoiceTotals:
    net_amount: Decimal
    vat_amount: Decimal
    exempt_amount: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class ItemAmounts:
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal


def calculate_item(item) -> ItemAmounts:
    """IVA y total de un ítem (objeto con quantity, unit_price y vat_rate)."""
    subtotal = _decimal(item.quantity) * _decimal(item.unit_price)
    vat = subtotal * _decimal(item.vat_rate) / HUNDRED
    return ItemAmounts(
        subtotal=round_amount(subtotal),
        vat_amount=round_amount(vat),
        total_amount=round_amount(subtotal + vat),
    )


def calculate_totals(items: Iterable, exchange_rate=1) -> InvoiceTotals:
    """
    Totales del comprobante en la moneda del comprobante.

    El tipo de cambio no se aplica a los importes; se informa aparte a ARCA.
    """
    net = ZERO
    vat = ZERO
    exempt = ZERO
    for item in items:
        subtotal = _decimal(item.quantity) * _decimal(item.unit_price)
        rate = _decimal(item.vat_rate)
        if rate == ZERO:
            exempt += subtotal
        else:
            net += subtotal
            vat += subtotal * rate / HUNDRED

    return InvoiceTotals(
        net_amount=round_amount(net),
        vat_amount=round_amount(vat),
        exempt_amount=round_amount(exempt),
        total_amount=round_amount(net + vat + exempt),
    )
