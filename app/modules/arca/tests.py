"""
Tests del canal con ARCA: caché de tickets, firma del TRA, autenticador y
gateway de autorización.
"""

import base64
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import fakeredis
import pytest
from cryptography.hazmat.primitives.serialization import pkcs7

from app.common.exceptions import (
    AuthenticationFailed, NoCertificate, InvalidSubmission, GatewayUnavailable
)
from app.modules.arca.auth import TokenAuthenticator, build_tra, sign_tra
from app.modules.arca.cache import InMemoryTokenCache, RedisTokenCache, token_cache_key
from app.modules.arca.gateway import ArcaGateway
from app.modules.arca.schemas import AuthToken, InvoiceRequest, ArcaInvoiceItem, Approved, Rejected
from app.modules.arca.transport import SimulatedArcaTransport, TransportError
from app.modules.certificates.models import Certificate
from app.modules.certificates.service import CertificateService
from conftest import TEST_CUIT


def make_token(hours: float = 12) -> AuthToken:
    return AuthToken(
        token=uuid4().hex,
        sign=uuid4().hex,
        expires_at=datetime.now(timezone.utc) + timedelta(hours=hours),
    )


class CountingTransport(SimulatedArcaTransport):
    """Autoridad simulada que cuenta los intercambios de ticket."""

    def __init__(self):
        self.token_requests = 0
        self.signed_tickets = []

    def request_token(self, signed_ticket, is_production):
        self.token_requests += 1
        self.signed_tickets.append(signed_ticket)
        return super().request_token(signed_ticket, is_production)


class BrokenLoginTransport(SimulatedArcaTransport):

    def request_token(self, signed_ticket, is_production):
        raise TransportError("WSAA no responde")


class StubSubmitTransport(SimulatedArcaTransport):

    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = 0

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        self.calls += 1
        if self.error:
            raise self.error
        return self.response


def certificate_stub(certificate_pair):
    cert_pem, key_pem = certificate_pair

    class Stub:
        certificate = cert_pem
        private_key = key_pem
        passphrase = None

    return Stub()


def invoice_request(**overrides) -> InvoiceRequest:
    data = dict(
        invoice_type=1,
        point_of_sale=1,
        number=1,
        issue_date=date.today(),
        concept=1,
        client_document_type=80,
        client_document_number=TEST_CUIT,
        total_amount=Decimal("121.00"),
        net_amount=Decimal("100.00"),
        exempt_amount=Decimal("0.00"),
        vat_amount=Decimal("21.00"),
        items=[ArcaInvoiceItem(
            description="Servicio", quantity=Decimal("1"), unit_price=Decimal("100"),
            vat_rate=Decimal("21"), vat_amount=Decimal("21.00"), total_amount=Decimal("121.00"),
        )],
    )
    data.update(overrides)
    return InvoiceRequest(**data)


# ===== CACHÉ =====

class TestInMemoryTokenCache:

    def test_put_get_delete(self):
        cache = InMemoryTokenCache()
        token = make_token()
        cache.put("k", token, 3600)
        assert cache.get("k") is token
        cache.delete("k")
        assert cache.get("k") is None

    def test_expired_entry_is_dropped(self):
        cache = InMemoryTokenCache()
        cache.put("k", make_token(hours=-1), 60)
        assert cache.get("k") is None

    def test_non_positive_ttl_not_stored(self):
        cache = InMemoryTokenCache()
        cache.put("k", make_token(), 0)
        assert cache.get("k") is None

    def test_key_format(self):
        user_id = uuid4()
        assert token_cache_key(user_id, TEST_CUIT, True) == f"{user_id}_{TEST_CUIT}_prod"
        assert token_cache_key(user_id, TEST_CUIT, False) == f"{user_id}_{TEST_CUIT}_test"


class TestRedisTokenCache:

    def test_round_trip_with_ttl(self):
        client = fakeredis.FakeRedis()
        cache = RedisTokenCache(client)
        token = make_token()
        cache.put("k", token, 120)

        restored = cache.get("k")
        assert restored == token
        assert 0 < client.ttl("arca:token:k") <= 120

    def test_delete_and_clear(self):
        cache = RedisTokenCache(fakeredis.FakeRedis())
        cache.put("a", make_token(), 60)
        cache.put("b", make_token(), 60)
        cache.delete("a")
        assert cache.get("a") is None
        cache.clear()
        assert cache.get("b") is None


# ===== TRA =====

class TestAccessTicket:

    def test_build_tra(self):
        now = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        tra = build_tra("wsfe", now=now)
        assert '<loginTicketRequest version="1.0">' in tra
        assert "<service>wsfe</service>" in tra
        assert f"<uniqueId>{int(now.timestamp())}</uniqueId>" in tra
        assert "<generationTime>2024-05-01T12:00:00+00:00</generationTime>" in tra
        assert "<expirationTime>2024-05-02T00:00:00+00:00</expirationTime>" in tra

    def test_sign_tra_is_cms_with_signer_certificate(self, certificate_pair):
        cert_pem, key_pem = certificate_pair
        signed = sign_tra(build_tra("wsfe"), cert_pem, key_pem)
        der = base64.b64decode(signed)
        certificates = pkcs7.load_der_pkcs7_certificates(der)
        assert len(certificates) == 1
        assert b"<service>wsfe</service>" in der


# ===== AUTENTICADOR =====

class TestTokenAuthenticator:

    def test_cache_hit_skips_exchange(self, certificate_pair):
        transport = CountingTransport()
        provider_calls = []

        def provider(user_id, cuit, is_production):
            provider_calls.append((user_id, cuit, is_production))
            return certificate_stub(certificate_pair)

        authenticator = TokenAuthenticator(provider, InMemoryTokenCache(), transport)
        user_id = uuid4()

        first = authenticator.get_token(user_id, TEST_CUIT, False)
        second = authenticator.get_token(user_id, TEST_CUIT, False)

        assert first is second
        assert transport.token_requests == 1
        assert len(provider_calls) == 1

    def test_environments_are_cached_separately(self, certificate_pair):
        transport = CountingTransport()
        authenticator = TokenAuthenticator(
            lambda *args: certificate_stub(certificate_pair), InMemoryTokenCache(), transport
        )
        user_id = uuid4()
        authenticator.get_token(user_id, TEST_CUIT, False)
        authenticator.get_token(user_id, TEST_CUIT, True)
        assert transport.token_requests == 2

    def test_expired_cached_token_is_refreshed(self, certificate_pair):
        transport = CountingTransport()
        cache = InMemoryTokenCache()
        user_id = uuid4()
        stale = make_token(hours=-1)
        cache.put(token_cache_key(user_id, TEST_CUIT, False), stale, 60)

        authenticator = TokenAuthenticator(lambda *args: certificate_stub(certificate_pair), cache, transport)
        token = authenticator.get_token(user_id, TEST_CUIT, False)
        assert token != stale
        assert transport.token_requests == 1

    def test_clear_token(self, certificate_pair):
        transport = CountingTransport()
        authenticator = TokenAuthenticator(
            lambda *args: certificate_stub(certificate_pair), InMemoryTokenCache(), transport
        )
        user_id = uuid4()
        authenticator.get_token(user_id, TEST_CUIT, False)
        authenticator.clear_token(user_id, TEST_CUIT, False)
        authenticator.get_token(user_id, TEST_CUIT, False)
        assert transport.token_requests == 2

    def test_exchange_failure_is_authentication_failed(self, certificate_pair):
        cache = InMemoryTokenCache()
        authenticator = TokenAuthenticator(
            lambda *args: certificate_stub(certificate_pair), cache, BrokenLoginTransport()
        )
        user_id = uuid4()
        with pytest.raises(AuthenticationFailed):
            authenticator.get_token(user_id, TEST_CUIT, False)
        assert cache.get(token_cache_key(user_id, TEST_CUIT, False)) is None

    def test_unusable_key_is_authentication_failed(self, certificate_pair):
        cert_pem, _ = certificate_pair

        class BrokenCertificate:
            certificate = cert_pem
            private_key = "not a key"
            passphrase = None

        authenticator = TokenAuthenticator(
            lambda *args: BrokenCertificate(), InMemoryTokenCache(), CountingTransport()
        )
        with pytest.raises(AuthenticationFailed):
            authenticator.get_token(uuid4(), TEST_CUIT, False)

    def test_expired_certificate_raises_no_certificate(self, db_session, sample_user, certificate_pair):
        cert_pem, key_pem = certificate_pair
        expired = Certificate(
            user_id=sample_user.id, cuit=TEST_CUIT, certificate=cert_pem, private_key=key_pem,
            is_production=False, is_active=True,
            expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
        )
        db_session.add(expired)
        db_session.commit()

        transport = CountingTransport()
        authenticator = TokenAuthenticator(
            CertificateService(db_session).get_active_certificate, InMemoryTokenCache(), transport
        )
        with pytest.raises(NoCertificate):
            authenticator.get_token(sample_user.id, TEST_CUIT, False)

        assert transport.token_requests == 0
        db_session.expire_all()
        assert db_session.get(Certificate, expired.id).is_active is False

    def test_signed_ticket_with_real_certificate(self, db_session, sample_user, sample_certificate):
        transport = CountingTransport()
        authenticator = TokenAuthenticator(
            CertificateService(db_session).get_active_certificate, InMemoryTokenCache(), transport
        )
        token = authenticator.get_token(sample_user.id, TEST_CUIT, False)
        assert token.is_valid()
        assert pkcs7.load_der_pkcs7_certificates(base64.b64decode(transport.signed_tickets[0]))


# ===== GATEWAY =====

class TestGatewayValidation:

    gateway = ArcaGateway(SimulatedArcaTransport())

    @pytest.mark.parametrize("overrides", [
        {"invoice_type": 0},
        {"point_of_sale": 0},
        {"concept": 4},
        {"client_document_number": "  "},
        {"client_document_type": 0},
        {"total_amount": Decimal("0")},
        {"items": []},
        {"concept": 2},
        {"concept": 3, "service_from": date.today()},
    ])
    def test_invalid_requests(self, overrides):
        with pytest.raises(InvalidSubmission):
            self.gateway.validate_request(invoice_request(**overrides))

    def test_services_with_dates_are_valid(self):
        self.gateway.validate_request(invoice_request(
            concept=2, service_from=date.today(), service_to=date.today(), payment_due=date.today()
        ))

    def test_first_violated_rule_is_reported(self):
        with pytest.raises(InvalidSubmission) as exc:
            self.gateway.validate_request(invoice_request(invoice_type=0, items=[]))
        assert "tipo de comprobante" in exc.value.detail


class TestGatewaySubmit:

    def test_simulated_approval(self):
        result = ArcaGateway(SimulatedArcaTransport()).submit(make_token(), TEST_CUIT, invoice_request(number=7), False)
        assert isinstance(result, Approved)
        assert len(result.cae) == 14 and result.cae.startswith("7")
        assert result.cae_expiration == date.today() + timedelta(days=10)
        assert result.assigned_number == 7

    def test_rejection_is_a_result(self):
        transport = StubSubmitTransport(response={
            "success": False,
            "errors": [{"code": 10016, "message": "CUIT invalid"}],
            "observations": [],
        })
        result = ArcaGateway(transport).submit(make_token(), TEST_CUIT, invoice_request(), False)
        assert isinstance(result, Rejected)
        assert result.errors[0].code == 10016

    def test_transport_failure(self):
        transport = StubSubmitTransport(error=TimeoutError("timed out"))
        with pytest.raises(GatewayUnavailable):
            ArcaGateway(transport).submit(make_token(), TEST_CUIT, invoice_request(), False)

    def test_malformed_response(self):
        for response in ({"unexpected": True}, {"success": True}, None):
            with pytest.raises(GatewayUnavailable):
                ArcaGateway(StubSubmitTransport(response=response)).submit(
                    make_token(), TEST_CUIT, invoice_request(), False
                )

    def test_invalid_request_never_reaches_transport(self):
        transport = StubSubmitTransport(response={"success": True})
        with pytest.raises(InvalidSubmission):
            ArcaGateway(transport).submit(make_token(), TEST_CUIT, invoice_request(items=[]), False)
        assert transport.calls == 0

    def test_last_number_and_query(self):
        gateway = ArcaGateway(SimulatedArcaTransport())
        assert gateway.get_last_invoice_number(make_token(), TEST_CUIT, 1, 1, False) == 0
        assert gateway.query_invoice(make_token(), TEST_CUIT, 1, 1, 1, False)["found"] is False
