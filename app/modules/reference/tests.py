"""
Tests para las tablas de referencia de ARCA
"""
from decimal import Decimal

from app.modules.reference import data


class TestLookups:

    def test_invoice_types(self):
        assert data.get_invoice_type_by_id(1).code == "FA"
        assert data.get_invoice_type_by_code("fb").id == 6
        assert data.is_valid_invoice_type(11)
        assert not data.is_valid_invoice_type(999)

    def test_vat_rate_by_rate(self):
        assert data.get_vat_rate_by_rate(21).id == 5
        assert data.get_vat_rate_by_rate("10.5").id == 4
        assert data.get_vat_rate_by_rate(Decimal("2.5")).id == 9
        assert data.get_vat_rate_by_rate(0).id == 3
        assert data.get_vat_rate_by_rate(15) is None
        assert data.get_vat_rate_by_rate("abc") is None

    def test_document_types_default_to_dni(self):
        assert data.get_document_type_id("CUIT") == 80
        assert data.get_document_type_id("PASAPORTE") == 94
        assert data.get_document_type_id("CI_EXT") == 91
        assert data.get_document_type_id("UNKNOWN") == 96

    def test_concepts_and_currencies(self):
        assert data.is_valid_concept_type(3)
        assert not data.is_valid_concept_type(4)
        assert data.is_valid_currency("usd")
        assert not data.is_valid_currency("XYZ")

    def test_iva_conditions(self):
        assert data.get_iva_condition_by_code("RI").id == 1
        assert data.get_iva_condition_by_id(4).code == "CF"
        assert not data.is_valid_iva_condition("ZZ")


class TestReferenceEndpoints:

    def test_list_invoice_types(self, api_client):
        response = api_client.get("/reference/invoice-types")
        assert response.status_code == 200
        codes = {row["code"] for row in response.json()["data"]}
        assert {"FA", "FB", "FC", "NCA"} <= codes

    def test_get_unknown_invoice_type(self, api_client):
        assert api_client.get("/reference/invoice-types/999").status_code == 404

    def test_currencies(self, api_client):
        response = api_client.get("/reference/currencies")
        assert [c["code"] for c in response.json()["data"]][:2] == ["ARS", "USD"]
