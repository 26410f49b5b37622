"""
Tests para el módulo de Clientes

Cubren validación de documentos y condiciones de IVA, unicidad por usuario,
aislamiento entre usuarios y baja lógica.
"""
from app.common.validators import calculate_cuit_check_digit, validate_cuit, format_cuit
from app.modules.clients.models import Client
from conftest import TEST_CUIT, OTHER_CUIT


def client_payload(**overrides):
    payload = {
        "tax_id": OTHER_CUIT,
        "tax_id_type": "CUIT",
        "name": "Distribuidora del Sur SA",
        "email": "compras@delsur.com.ar",
        "iva_condition": "RI",
        "metadata": {"segmento": "mayorista"},
    }
    payload.update(overrides)
    return payload


class TestCuitValidation:

    def test_check_digit(self):
        assert calculate_cuit_check_digit("2012345678") == 6
        assert calculate_cuit_check_digit("3071234567") == 1
        assert calculate_cuit_check_digit("123") is None

    def test_validate_cuit(self):
        assert validate_cuit(TEST_CUIT)
        assert validate_cuit("20-12345678-6")
        assert not validate_cuit("20123456780")
        assert not validate_cuit("2012345678")

    def test_format_cuit(self):
        assert format_cuit(TEST_CUIT) == "20-12345678-6"


class TestClientEndpoints:

    def test_create_client(self, api_client, auth_headers):
        response = api_client.post("/clients/", json=client_payload(tax_id="30-71234567-1"), headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["tax_id"] == OTHER_CUIT
        assert data["is_active"] is True
        assert data["metadata"] == {"segmento": "mayorista"}

    def test_create_client_invalid_codes(self, api_client, auth_headers):
        bad_doc = api_client.post("/clients/", json=client_payload(tax_id_type="XX"), headers=auth_headers)
        assert bad_doc.status_code == 422
        bad_iva = api_client.post("/clients/", json=client_payload(iva_condition="ZZ"), headers=auth_headers)
        assert bad_iva.status_code == 422
        bad_cuit = api_client.post("/clients/", json=client_payload(tax_id="30712345670"), headers=auth_headers)
        assert bad_cuit.status_code == 422

    def test_dni_client_keeps_number(self, api_client, auth_headers):
        response = api_client.post(
            "/clients/",
            json=client_payload(tax_id="28123456", tax_id_type="dni", iva_condition="cf"),
            headers=auth_headers
        )
        assert response.status_code == 201
        assert response.json()["tax_id_type"] == "DNI"
        assert response.json()["iva_condition"] == "CF"

    def test_duplicate_tax_id(self, api_client, auth_headers):
        assert api_client.post("/clients/", json=client_payload(), headers=auth_headers).status_code == 201
        duplicate = api_client.post("/clients/", json=client_payload(name="Otro nombre"), headers=auth_headers)
        assert duplicate.status_code == 409

    def test_list_filters(self, api_client, auth_headers, sample_client):
        api_client.post("/clients/", json=client_payload(), headers=auth_headers)

        response = api_client.get("/clients/", params={"name": "sur"}, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["clients"][0]["tax_id"] == OTHER_CUIT

        all_clients = api_client.get("/clients/", headers=auth_headers).json()
        assert all_clients["total"] == 2

    def test_update_client(self, api_client, auth_headers, sample_client):
        response = api_client.put(
            f"/clients/{sample_client.id}",
            json={"name": "Nuevo Nombre SRL", "iva_condition": "EX"},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Nuevo Nombre SRL"
        assert response.json()["iva_condition"] == "EX"
        assert response.json()["tax_id"] == TEST_CUIT

    def test_soft_delete(self, api_client, auth_headers, sample_client, db_session):
        response = api_client.delete(f"/clients/{sample_client.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        db_session.expire_all()
        assert db_session.get(Client, sample_client.id) is not None

        inactive = api_client.get("/clients/", params={"is_active": False}, headers=auth_headers).json()
        assert inactive["total"] == 1


class TestClientOwnership:

    def test_other_user_gets_403(self, api_client, db_session, other_user, auth_headers):
        foreign = Client(
            user_id=other_user.id, tax_id=OTHER_CUIT, tax_id_type="CUIT",
            name="Ajeno", iva_condition="RI"
        )
        db_session.add(foreign)
        db_session.commit()

        assert api_client.get(f"/clients/{foreign.id}", headers=auth_headers).status_code == 403
        assert api_client.delete(f"/clients/{foreign.id}", headers=auth_headers).status_code == 403

    def test_unknown_client_404(self, api_client, auth_headers):
        response = api_client.get("/clients/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert response.status_code == 404

    def test_same_tax_id_allowed_for_different_users(self, api_client, db_session, other_user, auth_headers):
        db_session.add(Client(
            user_id=other_user.id, tax_id=OTHER_CUIT, tax_id_type="CUIT",
            name="Ajeno", iva_condition="RI"
        ))
        db_session.commit()
        assert api_client.post("/clients/", json=client_payload(), headers=auth_headers).status_code == 201
