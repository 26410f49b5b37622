"""
Tests para puntos de venta: unicidad del número, punto por defecto y
vista previa del próximo número de comprobante.
"""
from datetime import date
from decimal import Decimal

from app.modules.invoices.models import Invoice, InvoiceStatus
from app.modules.points_of_sale.models import PointOfSale
from app.modules.points_of_sale.service import format_invoice_number


def add_invoice(db, pos, client, number, invoice_type=1):
    db.add(Invoice(
        user_id=pos.user_id, client_id=client.id, point_of_sale_id=pos.id,
        invoice_type=invoice_type, number=number, concept=1, status=InvoiceStatus.APPROVED,
        issue_date=date.today(), total_amount=Decimal("10.00"),
    ))
    db.commit()


class TestFormatting:

    def test_format_invoice_number(self):
        assert format_invoice_number(1, 1) == "0001-00000001"
        assert format_invoice_number(12, 345) == "0012-00000345"


class TestPointOfSaleEndpoints:

    def test_create_and_duplicate(self, api_client, auth_headers):
        payload = {"number": 3, "name": "Sucursal Norte", "is_production": False}
        created = api_client.post("/points-of-sale/", json=payload, headers=auth_headers)
        assert created.status_code == 201
        assert created.json()["is_active"] is True

        duplicate = api_client.post("/points-of-sale/", json=payload, headers=auth_headers)
        assert duplicate.status_code == 409

    def test_number_range(self, api_client, auth_headers):
        response = api_client.post("/points-of-sale/", json={
            "number": 100000, "name": "Fuera de rango", "is_production": False,
        }, headers=auth_headers)
        assert response.status_code == 422

    def test_default_is_lowest_active(self, api_client, auth_headers, db_session, sample_user, sample_point_of_sale):
        db_session.add(PointOfSale(user_id=sample_user.id, number=7, name="PV 7", is_production=False))
        db_session.commit()
        assert api_client.get("/points-of-sale/default", headers=auth_headers).json()["number"] == 1

        api_client.delete(f"/points-of-sale/{sample_point_of_sale.id}", headers=auth_headers)
        assert api_client.get("/points-of-sale/default", headers=auth_headers).json()["number"] == 7

    def test_no_default(self, api_client, auth_headers):
        assert api_client.get("/points-of-sale/default", headers=auth_headers).status_code == 404

    def test_next_invoice_number(self, api_client, auth_headers, db_session, sample_point_of_sale, sample_client):
        url = f"/points-of-sale/{sample_point_of_sale.id}/next-invoice-number/1"
        first = api_client.get(url, headers=auth_headers).json()
        assert first["next_number"] == 1
        assert first["formatted"] == "0001-00000001"

        add_invoice(db_session, sample_point_of_sale, sample_client, 1)
        add_invoice(db_session, sample_point_of_sale, sample_client, 2)
        add_invoice(db_session, sample_point_of_sale, sample_client, 1, invoice_type=6)

        assert api_client.get(url, headers=auth_headers).json()["formatted"] == "0001-00000003"
        other_type = api_client.get(
            f"/points-of-sale/{sample_point_of_sale.id}/next-invoice-number/6", headers=auth_headers
        ).json()
        assert other_type["next_number"] == 2

    def test_update_keeps_number(self, api_client, auth_headers, sample_point_of_sale):
        response = api_client.put(f"/points-of-sale/{sample_point_of_sale.id}", json={
            "name": "Casa Central (renovada)", "metadata": {"direccion": "Av. Corrientes 1234"},
        }, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["number"] == 1
        assert data["name"] == "Casa Central (renovada)"
        assert data["metadata"] == {"direccion": "Av. Corrientes 1234"}

    def test_foreign_point_of_sale(self, api_client, auth_headers, db_session, other_user):
        foreign = PointOfSale(user_id=other_user.id, number=1, name="Ajeno", is_production=True)
        db_session.add(foreign)
        db_session.commit()
        assert api_client.get(f"/points-of-sale/{foreign.id}", headers=auth_headers).status_code == 403
