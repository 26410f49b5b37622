"""
Datos de referencia de ARCA/AFIP

Tablas estáticas usadas para validar facturas, clientes y puntos de venta.
Fuente: especificación de los Web Services de Factura Electrónica de AFIP.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Optional


@dataclass(frozen=True)
class InvoiceTypeRef:
    id: int
    code: str
    name: str
    description: str
    category: str  # factura | nota_credito | nota_debito | recibo


@dataclass(frozen=True)
class VatRateRef:
    id: int
    code: str
    rate: Decimal
    description: str


@dataclass(frozen=True)
class CodeRef:
    id: int
    code: str
    name: str
    description: str


@dataclass(frozen=True)
class CurrencyRef:
    code: str
    name: str
    symbol: str


INVOICE_TYPES: List[InvoiceTypeRef] = [
    # Facturas
    InvoiceTypeRef(1, "FA", "Factura A", "Factura A (Responsable Inscripto)", "factura"),
    InvoiceTypeRef(6, "FB", "Factura B", "Factura B (Monotributo, Consumidor Final)", "factura"),
    InvoiceTypeRef(11, "FC", "Factura C", "Factura C (Responsable Monotributo)", "factura"),
    InvoiceTypeRef(51, "FM", "Factura M", "Factura M", "factura"),
    InvoiceTypeRef(201, "FE", "Factura E", "Factura de Crédito Electrónica MiPyMEs A", "factura"),
    # Notas de crédito
    InvoiceTypeRef(3, "NCA", "Nota de Crédito A", "Nota de Crédito A", "nota_credito"),
    InvoiceTypeRef(8, "NCB", "Nota de Crédito B", "Nota de Crédito B", "nota_credito"),
    InvoiceTypeRef(13, "NCC", "Nota de Crédito C", "Nota de Crédito C", "nota_credito"),
    InvoiceTypeRef(53, "NCM", "Nota de Crédito M", "Nota de Crédito M", "nota_credito"),
    # Notas de débito
    InvoiceTypeRef(2, "NDA", "Nota de Débito A", "Nota de Débito A", "nota_debito"),
    InvoiceTypeRef(7, "NDB", "Nota de Débito B", "Nota de Débito B", "nota_debito"),
    InvoiceTypeRef(12, "NDC", "Nota de Débito C", "Nota de Débito C", "nota_debito"),
    InvoiceTypeRef(52, "NDM", "Nota de Débito M", "Nota de Débito M", "nota_debito"),
    # Recibos
    InvoiceTypeRef(4, "RECA", "Recibo A", "Recibo A", "recibo"),
    InvoiceTypeRef(9, "RECB", "Recibo B", "Recibo B", "recibo"),
    InvoiceTypeRef(15, "RECC", "Recibo C", "Recibo C", "recibo"),
]

VAT_RATES: List[VatRateRef] = [
    VatRateRef(3, "0", Decimal("0"), "IVA 0%"),
    VatRateRef(4, "10.5", Decimal("10.5"), "IVA 10.5%"),
    VatRateRef(5, "21", Decimal("21"), "IVA 21%"),
    VatRateRef(6, "27", Decimal("27"), "IVA 27%"),
    VatRateRef(8, "5", Decimal("5"), "IVA 5%"),
    VatRateRef(9, "2.5", Decimal("2.5"), "IVA 2.5%"),
    VatRateRef(1, "EX", Decimal("0"), "Exento"),
    VatRateRef(2, "NG", Decimal("0"), "No Gravado"),
]

# Alícuotas aceptadas en los ítems de una factura
RECOGNIZED_VAT_RATES = frozenset(Decimal(r) for r in ("0", "2.5", "5", "10.5", "21", "27"))

DOCUMENT_TYPES: List[CodeRef] = [
    CodeRef(80, "CUIT", "CUIT", "Clave Única de Identificación Tributaria"),
    CodeRef(86, "CUIL", "CUIL", "Código Único de Identificación Laboral"),
    CodeRef(87, "CDI", "CDI", "Clave de Identificación"),
    CodeRef(89, "LE", "LE", "Libreta de Enrolamiento"),
    CodeRef(90, "LC", "LC", "Libreta Cívica"),
    CodeRef(91, "CI_EXT", "CI Extranjera", "Cédula de Identidad Extranjera"),
    CodeRef(92, "EN_TRAMITE", "En Trámite", "Documento en Trámite"),
    CodeRef(93, "ACTA_NAC", "Acta Nacimiento", "Acta de Nacimiento"),
    CodeRef(94, "PASAPORTE", "Pasaporte", "Pasaporte"),
    CodeRef(95, "CI_BS_AS", "CI Buenos Aires", "Cédula de Identidad Bs. As."),
    CodeRef(96, "DNI", "DNI", "Documento Nacional de Identidad"),
    CodeRef(99, "SIN_IDENTIFICAR", "Sin Identificar", "Consumidor Final"),
]

DEFAULT_DOCUMENT_TYPE_ID = 96

CONCEPT_TYPES: List[CodeRef] = [
    CodeRef(1, "PRODUCTOS", "Productos", "Venta de productos"),
    CodeRef(2, "SERVICIOS", "Servicios", "Prestación de servicios"),
    CodeRef(3, "MIXTO", "Productos y Servicios", "Productos y Servicios"),
]

CONCEPT_PRODUCTS = 1
CONCEPT_SERVICES = 2
CONCEPT_MIXED = 3

TAX_TYPES: List[CodeRef] = [
    CodeRef(1, "IMP_NAC", "Impuestos Nacionales", "Impuestos Nacionales"),
    CodeRef(2, "IMP_PROV", "Impuestos Provinciales", "Impuestos Provinciales"),
    CodeRef(3, "IMP_MUN", "Impuestos Municipales", "Impuestos Municipales"),
    CodeRef(4, "IMP_INT", "Impuestos Internos", "Impuestos Internos"),
    CodeRef(5, "IIBB", "Ingresos Brutos", "Ingresos Brutos"),
    CodeRef(6, "PERC_IVA", "Percepción de IVA", "Percepción de IVA"),
    CodeRef(7, "PERC_IIBB", "Percepción de IIBB", "Percepción de Ingresos Brutos"),
    CodeRef(99, "OTROS", "Otros", "Otros Tributos"),
]

CURRENCIES: List[CurrencyRef] = [
    CurrencyRef("ARS", "Peso Argentino", "$"),
    CurrencyRef("USD", "Dólar Estadounidense", "US$"),
    CurrencyRef("EUR", "Euro", "€"),
    CurrencyRef("BRL", "Real Brasileño", "R$"),
    CurrencyRef("CLP", "Peso Chileno", "CLP$"),
    CurrencyRef("UYU", "Peso Uruguayo", "UYU$"),
]

IVA_CONDITIONS: List[CodeRef] = [
    CodeRef(1, "RI", "Responsable Inscripto", "Responsable Inscripto en IVA"),
    CodeRef(2, "RM", "Responsable Monotributo", "Sujeto adherido al Monotributo"),
    CodeRef(3, "NE", "Responsable No Inscripto", "Responsable No Inscripto"),
    CodeRef(4, "CF", "Consumidor Final", "Consumidor Final"),
    CodeRef(5, "EX", "Exento", "Sujeto Exento"),
    CodeRef(6, "RM_EX", "Monotributo Social", "Sujeto Monotributo Social"),
    CodeRef(7, "PEQUENO_CONTRIB", "Pequeño Contribuyente Eventual", "Pequeño Contribuyente Eventual"),
    CodeRef(8, "PEQUENO_CONTRIB_SOC", "Pequeño Contribuyente Social", "Pequeño Contribuyente Eventual Social"),
    CodeRef(9, "NO_RESP", "No Responsable", "No Responsable"),
    CodeRef(10, "IVA_LIB", "IVA Liberado", "IVA Liberado - Ley 19.640"),
    CodeRef(11, "RI_AGENTE_PERC", "RI - Agente de Percepción", "Responsable Inscripto - Agente de Percepción"),
    CodeRef(12, "PEQUENO_CONTRIB_EVENTUAL_SOC", "Pequeño Contribuyente Eventual Social", "Pequeño Contribuyente Eventual Social"),
    CodeRef(13, "IVA_NO_ALCANZADO", "IVA No Alcanzado", "IVA No Alcanzado"),
]


# ===== Búsquedas =====

def _by_id(table, id: int):
    return next((row for row in table if row.id == id), None)


def _by_code(table, code: str):
    if code is None:
        return None
    return next((row for row in table if row.code.upper() == str(code).upper()), None)


def get_invoice_type_by_id(id: int) -> Optional[InvoiceTypeRef]:
    return _by_id(INVOICE_TYPES, id)


def get_invoice_type_by_code(code: str) -> Optional[InvoiceTypeRef]:
    return _by_code(INVOICE_TYPES, code)


def get_vat_rate_by_id(id: int) -> Optional[VatRateRef]:
    return _by_id(VAT_RATES, id)


def get_vat_rate_by_rate(rate) -> Optional[VatRateRef]:
    """Primera alícuota de la tabla con ese porcentaje (0 devuelve 'IVA 0%')."""
    try:
        value = Decimal(str(rate))
    except Exception:
        return None
    if value not in RECOGNIZED_VAT_RATES:
        return None
    return next((row for row in VAT_RATES if row.rate == value), None)


def get_document_type_by_id(id: int) -> Optional[CodeRef]:
    return _by_id(DOCUMENT_TYPES, id)


def get_document_type_by_code(code: str) -> Optional[CodeRef]:
    return _by_code(DOCUMENT_TYPES, code)


def get_document_type_id(code: str) -> int:
    """Código de documento de ARCA para un tipo (DNI si no se reconoce)."""
    doc = get_document_type_by_code(code)
    return doc.id if doc else DEFAULT_DOCUMENT_TYPE_ID


def get_concept_type_by_id(id: int) -> Optional[CodeRef]:
    return _by_id(CONCEPT_TYPES, id)


def get_tax_type_by_id(id: int) -> Optional[CodeRef]:
    return _by_id(TAX_TYPES, id)


def get_currency_by_code(code: str) -> Optional[CurrencyRef]:
    if code is None:
        return None
    return next((c for c in CURRENCIES if c.code.upper() == str(code).upper()), None)


def get_iva_condition_by_id(id: int) -> Optional[CodeRef]:
    return _by_id(IVA_CONDITIONS, id)


def get_iva_condition_by_code(code: str) -> Optional[CodeRef]:
    return _by_code(IVA_CONDITIONS, code)


# ===== Validaciones =====

def is_valid_invoice_type(id: int) -> bool:
    return get_invoice_type_by_id(id) is not None


def is_valid_vat_rate(rate) -> bool:
    return get_vat_rate_by_rate(rate) is not None


def is_valid_document_type(code: str) -> bool:
    return get_document_type_by_code(code) is not None


def is_valid_concept_type(id: int) -> bool:
    return get_concept_type_by_id(id) is not None


def is_valid_currency(code: str) -> bool:
    return get_currency_by_code(code) is not None


def is_valid_iva_condition(code: str) -> bool:
    return get_iva_condition_by_code(code) is not None
