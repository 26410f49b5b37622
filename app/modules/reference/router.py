"""
Router de datos de referencia de ARCA (solo lectura, sin autenticación)
"""
from fastapi import APIRouter

from app.common.exceptions import ResourceNotFound
from app.modules.reference import data

router = APIRouter(prefix="/reference", tags=["Reference"])


@router.get("/invoice-types")
def list_invoice_types():
    return {"data": data.INVOICE_TYPES}


@router.get("/invoice-types/{invoice_type_id}")
def get_invoice_type(invoice_type_id: int):
    invoice_type = data.get_invoice_type_by_id(invoice_type_id)
    if not invoice_type:
        raise ResourceNotFound(f"Tipo de comprobante {invoice_type_id} no encontrado")
    return {"data": invoice_type}


@router.get("/vat-rates")
def list_vat_rates():
    return {"data": data.VAT_RATES}


@router.get("/document-types")
def list_document_types():
    return {"data": data.DOCUMENT_TYPES}


@router.get("/concept-types")
def list_concept_types():
    return {"data": data.CONCEPT_TYPES}


@router.get("/tax-types")
def list_tax_types():
    return {"data": data.TAX_TYPES}


@router.get("/currencies")
def list_currencies():
    return {"data": data.CURRENCIES}


@router.get("/iva-conditions")
def list_iva_conditions():
    return {"data": data.IVA_CONDITIONS}
