"""
Tests para certificados: validación X.509, par certificado/clave,
invariante de un único certificado activo y vencimiento perezoso.
"""

from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from app.common.exceptions import (
    InvalidCertificate, CertificateExpired, CertificateNotYetValid,
    InvalidPrivateKey, KeyPairMismatch, NoCertificate
)
from app.modules.certificates.models import Certificate
from app.modules.certificates.schemas import CertificateCreate
from app.modules.certificates.service import CertificateService
from app.modules.certificates.validator import CertificateValidator
from conftest import TEST_CUIT, OTHER_CUIT, make_certificate, make_key_pair


validator = CertificateValidator()


def encrypted_key_pem(key, passphrase: str) -> str:
    return key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.BestAvailableEncryption(passphrase.encode()),
    ).decode()


# ===== VALIDADOR =====

class TestCertificateParsing:

    def test_parse_info(self, certificate_pair):
        cert_pem, _ = certificate_pair
        info = validator.parse(cert_pem)
        assert f"serialNumber=CUIT {TEST_CUIT}" in info.subject
        assert info.subject == info.issuer
        assert info.valid_from < info.valid_to
        assert info.valid_to.tzinfo is not None
        assert len(info.fingerprint.split(":")) == 32
        assert info.fingerprint == info.fingerprint.upper()

    def test_malformed_certificate(self):
        with pytest.raises(InvalidCertificate):
            validator.parse("-----BEGIN CERTIFICATE-----\nnot a cert\n-----END CERTIFICATE-----")
        with pytest.raises(InvalidCertificate):
            validator.validate("garbage")

    def test_expired_certificate(self):
        now = datetime.now(timezone.utc)
        cert_pem, _ = make_certificate(not_before=now - timedelta(days=400), not_after=now - timedelta(days=1))
        with pytest.raises(CertificateExpired):
            validator.validate(cert_pem)

    def test_not_yet_valid_certificate(self):
        now = datetime.now(timezone.utc)
        cert_pem, _ = make_certificate(not_before=now + timedelta(days=2), not_after=now + timedelta(days=30))
        with pytest.raises(CertificateNotYetValid):
            validator.validate(cert_pem)

    def test_expired_is_an_invalid_certificate(self):
        assert issubclass(CertificateExpired, InvalidCertificate)
        assert CertificateExpired().status_code == 400


class TestPrivateKeys:

    def test_plain_key(self, certificate_pair):
        _, key_pem = certificate_pair
        assert validator.validate_private_key(key_pem) is not None

    def test_encrypted_key_requires_passphrase(self):
        key_pem = encrypted_key_pem(make_key_pair(), "secreta")
        assert validator.validate_private_key(key_pem, "secreta") is not None
        with pytest.raises(InvalidPrivateKey):
            validator.validate_private_key(key_pem)
        with pytest.raises(InvalidPrivateKey):
            validator.validate_private_key(key_pem, "incorrecta")

    def test_garbage_key(self):
        with pytest.raises(InvalidPrivateKey):
            validator.validate_private_key("not a key")


class TestKeyPair:

    def test_matching_pair(self, certificate_pair):
        cert_pem, key_pem = certificate_pair
        assert validator.validate_key_pair(cert_pem, key_pem) is True

    def test_encrypted_matching_pair(self):
        key = make_key_pair()
        cert_pem, _ = make_certificate(key=key)
        assert validator.validate_key_pair(cert_pem, encrypted_key_pem(key, "clave"), "clave") is True

    def test_mismatched_pair(self, certificate_pair):
        cert_pem, _ = certificate_pair
        _, other_key_pem = make_certificate()
        assert validator.validate_key_pair(cert_pem, other_key_pem) is False

    def test_ec_key_against_rsa_certificate(self, certificate_pair):
        cert_pem, _ = certificate_pair
        ec_key_pem = ec.generate_private_key(ec.SECP256R1()).private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        assert validator.validate_key_pair(cert_pem, ec_key_pem) is False

    def test_ec_pair(self):
        key = ec.generate_private_key(ec.SECP256R1())
        cert_pem, key_pem = make_certificate(key=key)
        assert validator.validate_key_pair(cert_pem, key_pem) is True

    def test_never_raises(self):
        assert validator.validate_key_pair("garbage", "garbage") is False


class TestTaxIdExtraction:

    def test_cuit_prefix(self, certificate_pair):
        cert_pem, _ = certificate_pair
        assert validator.extract_tax_id(cert_pem) == TEST_CUIT

    def test_bare_serial_number(self):
        cert_pem, _ = make_certificate(cuit=OTHER_CUIT, serial_text="{cuit}")
        assert validator.extract_tax_id(cert_pem) == OTHER_CUIT

    def test_lowercase_cuit_prefix(self):
        cert_pem, _ = make_certificate(cuit=OTHER_CUIT, serial_text="cuit {cuit}", extra_attributes=[
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, f"Sucursal {TEST_CUIT}"),
        ])
        assert validator.extract_tax_id(cert_pem) == OTHER_CUIT

    def test_serial_number_wins_over_other_digits(self):
        cert_pem, _ = make_certificate(cuit=OTHER_CUIT, serial_text="{cuit}", extra_attributes=[
            x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, f"Sucursal {TEST_CUIT}"),
        ])
        assert validator.extract_tax_id(cert_pem) == OTHER_CUIT

    def test_absent(self):
        cert_pem, _ = make_certificate(serial_text=None)
        assert validator.extract_tax_id(cert_pem) is None

    def test_unparsable(self):
        assert validator.extract_tax_id("garbage") is None


# ===== SERVICIO =====

def upload_data(cuit=TEST_CUIT, is_production=False, pair=None):
    cert_pem, key_pem = pair or make_certificate(cuit=cuit)
    return CertificateCreate(cuit=cuit, certificate=cert_pem, private_key=key_pem, is_production=is_production)


class TestCertificateService:

    def test_single_active_per_identity(self, db_session, sample_user):
        service = CertificateService(db_session)
        first = service.create_certificate(sample_user.id, upload_data())
        second = service.create_certificate(sample_user.id, upload_data())
        production = service.create_certificate(sample_user.id, upload_data(is_production=True))

        db_session.expire_all()
        active = db_session.query(Certificate).filter(
            Certificate.user_id == sample_user.id,
            Certificate.cuit == TEST_CUIT,
            Certificate.is_production == False,
            Certificate.is_active == True
        ).all()
        assert [c.id for c in active] == [second.id]
        assert db_session.get(Certificate, first.id).is_active is False
        assert db_session.get(Certificate, production.id).is_active is True

    def test_stores_metadata_and_expiry(self, db_session, sample_user):
        certificate = CertificateService(db_session).create_certificate(sample_user.id, upload_data())
        assert certificate.extra_data["fingerprint"]
        assert "serialNumber=CUIT" in certificate.extra_data["subject"]
        assert certificate.expires_at is not None

    def test_mismatched_pair_rejected(self, db_session, sample_user):
        cert_pem, _ = make_certificate()
        _, other_key = make_certificate()
        with pytest.raises(KeyPairMismatch):
            CertificateService(db_session).create_certificate(
                sample_user.id, upload_data(pair=(cert_pem, other_key))
            )
        assert db_session.query(Certificate).count() == 0

    def test_expired_upload_rejected(self, db_session, sample_user):
        now = datetime.now(timezone.utc)
        pair = make_certificate(not_before=now - timedelta(days=30), not_after=now - timedelta(seconds=1))
        with pytest.raises(CertificateExpired):
            CertificateService(db_session).create_certificate(sample_user.id, upload_data(pair=pair))

    def test_get_active_certificate(self, db_session, sample_user, sample_certificate):
        found = CertificateService(db_session).get_active_certificate(sample_user.id, TEST_CUIT, False)
        assert found.id == sample_certificate.id

    def test_no_certificate(self, db_session, sample_user, sample_certificate):
        service = CertificateService(db_session)
        with pytest.raises(NoCertificate):
            service.get_active_certificate(sample_user.id, TEST_CUIT, True)
        with pytest.raises(NoCertificate):
            service.get_active_certificate(sample_user.id, OTHER_CUIT, False)

    def test_expired_certificate_is_lazily_deactivated(self, db_session, sample_user, certificate_pair):
        cert_pem, key_pem = certificate_pair
        expired = Certificate(
            user_id=sample_user.id, cuit=TEST_CUIT, certificate=cert_pem, private_key=key_pem,
            is_production=False, is_active=True,
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )
        db_session.add(expired)
        db_session.commit()

        with pytest.raises(NoCertificate):
            CertificateService(db_session).get_active_certificate(sample_user.id, TEST_CUIT, False)

        db_session.expire_all()
        assert db_session.get(Certificate, expired.id).is_active is False

    def test_expiring_certificates(self, db_session, sample_user, certificate_pair):
        cert_pem, key_pem = certificate_pair
        now = datetime.now(timezone.utc)
        for days in (5, 90):
            db_session.add(Certificate(
                user_id=sample_user.id, cuit=TEST_CUIT, certificate=cert_pem, private_key=key_pem,
                is_production=days == 5, is_active=True, expires_at=now + timedelta(days=days),
            ))
        db_session.commit()

        expiring = CertificateService(db_session).get_expiring_certificates(sample_user.id, days=30)
        assert len(expiring) == 1
        assert expiring[0].is_production is True


# ===== ENDPOINTS =====

class TestCertificateEndpoints:

    def test_upload_hides_private_key(self, api_client, auth_headers, certificate_pair):
        cert_pem, key_pem = certificate_pair
        response = api_client.post("/certificates/", json={
            "cuit": "20-12345678-6",
            "certificate": cert_pem,
            "private_key": key_pem,
            "is_production": False,
        }, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["cuit"] == TEST_CUIT
        assert "private_key" not in data
        assert "passphrase" not in data
        assert data["metadata"]["fingerprint"]

        listed = api_client.get("/certificates/", headers=auth_headers).json()
        assert len(listed) == 1
        assert "private_key" not in listed[0]

    def test_upload_mismatch_is_400(self, api_client, auth_headers, certificate_pair):
        cert_pem, _ = certificate_pair
        _, other_key = make_certificate()
        response = api_client.post("/certificates/", json={
            "cuit": TEST_CUIT, "certificate": cert_pem, "private_key": other_key,
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_validate_endpoint(self, api_client, auth_headers, certificate_pair):
        cert_pem, key_pem = certificate_pair
        response = api_client.post("/certificates/validate", json={
            "certificate": cert_pem, "private_key": key_pem,
        }, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["key_pair_match"] is True
        assert data["extracted_cuit"] == TEST_CUIT
        assert data["errors"] == []

    def test_validate_endpoint_reports_errors(self, api_client, auth_headers):
        response = api_client.post("/certificates/validate", json={
            "certificate": "garbage", "private_key": "garbage",
        }, headers=auth_headers)
        data = response.json()
        assert data["valid"] is False
        assert data["private_key_valid"] is False
        assert len(data["errors"]) == 2

    def test_deactivate(self, api_client, auth_headers, sample_certificate):
        response = api_client.delete(f"/certificates/{sample_certificate.id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["is_active"] is False

    def test_foreign_certificate_403(self, api_client, db_session, other_user, auth_headers, certificate_pair):
        cert_pem, key_pem = certificate_pair
        foreign = Certificate(
            user_id=other_user.id, cuit=OTHER_CUIT, certificate=cert_pem, private_key=key_pem,
            is_production=False, is_active=True,
            expires_at=datetime.now(timezone.utc) + timedelta(days=10),
        )
        db_session.add(foreign)
        db_session.commit()
        assert api_client.get(f"/certificates/{foreign.id}", headers=auth_headers).status_code == 403
