"""
Tests para facturas: cálculo de totales, numeración, emisión contra ARCA
(aprobada, rechazada y con fallas) y barrido de facturas PENDING vencidas.
"""

import asyncio
import threading
import time
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import httpx
import pytest

from app.common.exceptions import (
    InvalidInvoiceInput, ResourceNotFound, AccessDenied, InvoiceSubmissionFailed, NumberingConflict
)
from app.core.config import settings
from app.database.database import SessionLocal
from app.main import app
from app.modules.arca import dependencies as arca_dependencies
from app.modules.arca.gateway import ArcaGateway
from app.modules.arca.transport import SimulatedArcaTransport, TransportError
from app.modules.clients.models import Client
from app.modules.invoices.calculator import calculate_item, calculate_totals, round_amount
from app.modules.invoices.models import Invoice, InvoiceItem, InvoiceStatus
from app.modules.invoices.schemas import InvoiceCreate, InvoiceItemCreate, InvoiceFilters
from app.modules.invoices import sequencer as sequencer_module
from app.modules.invoices.sequencer import InvoiceSequencer
from app.modules.invoices.service import InvoiceService
from app.modules.invoices.tasks import sweep_stale_pending_invoices
from app.modules.points_of_sale.models import PointOfSale
from conftest import TEST_CUIT, OTHER_CUIT


def item(quantity="1", unit_price="100", vat_rate="21", description="Servicio de consultoría"):
    return InvoiceItemCreate(
        description=description,
        quantity=Decimal(quantity),
        unit_price=Decimal(unit_price),
        vat_rate=Decimal(vat_rate),
    )


def invoice_data(client, items=None, **overrides) -> InvoiceCreate:
    data = dict(
        client_id=client.id,
        invoice_type=1,
        items=items or [item("3", "33.33", "21")],
    )
    data.update(overrides)
    return InvoiceCreate(**data)


def make_invoice(db, user_id, client_id, pos_id, number, invoice_type=1,
                 status=InvoiceStatus.PENDING, total="121.00", issue_date=None) -> Invoice:
    """Factura guardada directamente, sin pasar por ARCA."""
    invoice = Invoice(
        user_id=user_id,
        client_id=client_id,
        point_of_sale_id=pos_id,
        invoice_type=invoice_type,
        number=number,
        concept=1,
        status=status,
        issue_date=issue_date or date.today(),
        net_amount=Decimal(total),
        vat_amount=Decimal("0"),
        exempt_amount=Decimal("0"),
        tax_amount=Decimal("0"),
        total_amount=Decimal(total),
    )
    db.add(invoice)
    db.commit()
    return invoice


class CapturingTransport(SimulatedArcaTransport):
    """Autoridad simulada que guarda lo que recibe."""

    def __init__(self):
        self.payloads = []
        self.cuits = []

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        self.payloads.append(payload)
        self.cuits.append(cuit)
        return super().submit_invoice(token, sign, cuit, payload, is_production)


class RejectingTransport(SimulatedArcaTransport):

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        return {
            "success": False,
            "errors": [{"code": 10016, "message": "CUIT invalid"}],
            "observations": [{"code": 10048, "message": "Revisar condición de IVA"}],
        }


class FailingTransport(SimulatedArcaTransport):

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        raise TransportError("connection reset by peer")


class SlowTransport(SimulatedArcaTransport):

    def submit_invoice(self, token, sign, cuit, payload, is_production):
        time.sleep(1)
        return super().submit_invoice(token, sign, cuit, payload, is_production)


# ===== TOTALES =====

class TestInvoiceTotals:

    def test_basic_invoice(self):
        totals = calculate_totals([item("2", "100", "21")])
        assert totals.net_amount == Decimal("200.00")
        assert totals.vat_amount == Decimal("42.00")
        assert totals.exempt_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("242.00")

    def test_rounding_after_summing(self):
        totals = calculate_totals([item("3", "33.33", "21")])
        assert totals.net_amount == Decimal("99.99")
        assert totals.vat_amount == Decimal("21.00")
        assert totals.exempt_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("120.99")

    def test_mixed_rates(self):
        totals = calculate_totals([
            item("1", "100", "21"),
            item("1", "50", "10.5"),
            item("1", "30", "0"),
        ])
        assert totals.net_amount == Decimal("150.00")
        assert totals.vat_amount == Decimal("26.25")
        assert totals.exempt_amount == Decimal("30.00")
        assert totals.total_amount == Decimal("206.25")

    def test_zero_rate_goes_to_exempt(self):
        totals = calculate_totals([item("2", "50", "0")])
        assert totals.exempt_amount == Decimal("100.00")
        assert totals.net_amount == Decimal("0.00")
        assert totals.vat_amount == Decimal("0.00")
        assert totals.total_amount == Decimal("100.00")

    def test_half_up_rounding(self):
        assert round_amount(Decimal("0.125")) == Decimal("0.13")
        assert round_amount(Decimal("0.124")) == Decimal("0.12")
        assert calculate_totals([item("1", "0.125", "0")]).exempt_amount == Decimal("0.13")

    def test_exchange_rate_is_not_applied(self):
        items = [item("2", "10", "21")]
        assert calculate_totals(items, Decimal("950.5")) == calculate_totals(items)

    def test_total_matches_components(self):
        items = [item("7", "13.37", "10.5"), item("0.333", "99.99", "27"), item("5", "1.01", "0")]
        totals = calculate_totals(items)
        components = totals.net_amount + totals.vat_amount + totals.exempt_amount
        assert abs(totals.total_amount - components) <= Decimal("0.02")
        assert totals.total_amount >= totals.net_amount + totals.exempt_amount

    def test_item_amounts(self):
        amounts = calculate_item(item("3", "33.33", "21"))
        assert amounts.subtotal == Decimal("99.99")
        assert amounts.vat_amount == Decimal("21.00")
        assert amounts.total_amount == Decimal("120.99")


# ===== NUMERACIÓN =====

class TestInvoiceSequencer:

    def test_first_number_is_one(self, db_session, sample_point_of_sale):
        assert InvoiceSequencer(db_session).next_number(sample_point_of_sale.id, 1) == 1

    def test_scope_is_point_of_sale_and_type(self, db_session, sample_user, sample_client, sample_point_of_sale):
        make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 2)
        sequencer = InvoiceSequencer(db_session)
        assert sequencer.next_number(sample_point_of_sale.id, 1) == 3
        assert sequencer.next_number(sample_point_of_sale.id, 6) == 1
        assert sequencer.next_number(uuid4(), 1) == 1

    def test_retries_after_collision(self, db_session, sample_user, sample_client, sample_point_of_sale):
        user_id, client_id, pos_id = sample_user.id, sample_client.id, sample_point_of_sale.id
        attempts = []

        def build_invoice(number):
            attempts.append(number)
            if len(attempts) == 1:
                # Otro escritor gana la carrera por el mismo número
                other = SessionLocal()
                try:
                    make_invoice(other, user_id, client_id, pos_id, number)
                finally:
                    other.close()
            return Invoice(
                user_id=user_id, client_id=client_id, point_of_sale_id=pos_id,
                invoice_type=1, number=number, concept=1, issue_date=date.today(),
            )

        invoice = InvoiceSequencer(db_session, max_attempts=3).insert_with_next_number(pos_id, 1, build_invoice)
        assert attempts == [1, 2]
        assert invoice.number == 2

    def test_conflict_after_max_attempts(self, db_session, sample_user, sample_client, sample_point_of_sale):
        make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        attempts = []

        def build_invoice(number):
            attempts.append(number)
            return Invoice(
                user_id=sample_user.id, client_id=sample_client.id,
                point_of_sale_id=sample_point_of_sale.id, invoice_type=1,
                number=1, concept=1, issue_date=date.today(),
            )

        with pytest.raises(NumberingConflict) as exc:
            InvoiceSequencer(db_session, max_attempts=2).insert_with_next_number(
                sample_point_of_sale.id, 1, build_invoice
            )
        assert exc.value.status_code == 409
        assert len(attempts) == 2
        assert db_session.query(Invoice).count() == 1

    def test_concurrent_writers_get_distinct_numbers(self, sample_user, sample_client, sample_point_of_sale):
        user_id, client_id, pos_id = sample_user.id, sample_client.id, sample_point_of_sale.id
        writers = 5
        numbers = []
        errors = []
        lock = threading.Lock()

        def write():
            session = SessionLocal()
            try:
                invoice = InvoiceSequencer(session, max_attempts=writers * 2).insert_with_next_number(
                    pos_id, 1,
                    lambda number: Invoice(
                        user_id=user_id, client_id=client_id, point_of_sale_id=pos_id,
                        invoice_type=1, number=number, concept=1, issue_date=date.today(),
                    )
                )
                with lock:
                    numbers.append(invoice.number)
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=write) for _ in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sorted(numbers) == list(range(1, writers + 1))

    def test_waits_between_attempts(self, db_session, sample_user, sample_client, sample_point_of_sale, monkeypatch):
        make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        delays = []
        monkeypatch.setattr(sequencer_module.time, "sleep", delays.append)

        def build_invoice(number):
            return Invoice(
                user_id=sample_user.id, client_id=sample_client.id,
                point_of_sale_id=sample_point_of_sale.id, invoice_type=1,
                number=1, concept=1, issue_date=date.today(),
            )

        with pytest.raises(NumberingConflict):
            InvoiceSequencer(db_session, max_attempts=3, retry_delay=0.01).insert_with_next_number(
                sample_point_of_sale.id, 1, build_invoice
            )
        # Sin espera después del último intento
        assert len(delays) == 2
        assert 0 <= delays[0] <= 0.01
        assert 0 <= delays[1] <= 0.02

    def test_concurrent_issuance_with_default_attempts(self, sample_user, sample_client,
                                                       sample_point_of_sale, sample_certificate):
        user_id = sample_user.id
        writers = settings.INVOICE_NUMBERING_MAX_ATTEMPTS
        data = invoice_data(sample_client)
        barrier = threading.Barrier(writers)
        invoices = []
        errors = []
        lock = threading.Lock()

        def issue():
            session = SessionLocal()
            try:
                service = InvoiceService(session)
                barrier.wait()
                invoice = service.create_invoice(user_id, data)
                with lock:
                    invoices.append((invoice.number, invoice.status))
            except Exception as e:
                with lock:
                    errors.append(e)
            finally:
                session.close()

        threads = [threading.Thread(target=issue) for _ in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        assert sorted(number for number, _ in invoices) == list(range(1, writers + 1))
        assert {status for _, status in invoices} == {InvoiceStatus.APPROVED}


# ===== EMISIÓN =====

class TestInvoiceIssuance:

    def test_approved_invoice(self, db_session, sample_user, sample_client, sample_point_of_sale, sample_certificate):
        invoice = InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client, notes="Abril"))

        assert invoice.status == InvoiceStatus.APPROVED
        assert len(invoice.cae) == 14
        assert invoice.cae.startswith("7")
        assert invoice.cae_expiration == date.today() + timedelta(days=10)
        assert invoice.number == 1
        assert invoice.formatted_number == "0001-00000001"
        assert invoice.net_amount == Decimal("99.99")
        assert invoice.vat_amount == Decimal("21.00")
        assert invoice.total_amount == Decimal("120.99")
        assert invoice.arca_response["status"] == "approved"
        assert invoice.extra_data == {"notes": "Abril"}
        assert len(invoice.items) == 1
        assert invoice.items[0].vat_amount == Decimal("21.00")
        assert invoice.items[0].total_amount == Decimal("120.99")

    def test_numbers_are_sequential_per_type(self, db_session, sample_user, sample_client,
                                             sample_point_of_sale, sample_certificate):
        service = InvoiceService(db_session)
        first = service.create_invoice(sample_user.id, invoice_data(sample_client))
        second = service.create_invoice(sample_user.id, invoice_data(sample_client))
        other_type = service.create_invoice(sample_user.id, invoice_data(sample_client, invoice_type=6))
        assert (first.number, second.number, other_type.number) == (1, 2, 1)

    def test_request_sent_to_authority(self, db_session, sample_user, sample_client,
                                       sample_point_of_sale, sample_certificate):
        transport = CapturingTransport()
        service = InvoiceService(db_session, gateway=ArcaGateway(transport))
        issue = date(2024, 3, 1)
        due = date(2024, 3, 15)
        service.create_invoice(sample_user.id, invoice_data(
            sample_client, concept=2, issue_date=issue, due_date=due,
            items=[item("1", "100", "21"), item("1", "40", "0", description="Envío")],
        ))

        payload = transport.payloads[0]
        assert transport.cuits == [TEST_CUIT]
        assert payload["point_of_sale"] == 1
        assert payload["number"] == 1
        assert payload["client_document_type"] == 80
        assert payload["client_document_number"] == TEST_CUIT
        assert payload["service_from"] == issue.isoformat()
        assert payload["service_to"] == issue.isoformat()
        assert payload["payment_due"] == due.isoformat()
        assert Decimal(payload["total_amount"]) == Decimal("161.00")
        assert Decimal(payload["exempt_amount"]) == Decimal("40.00")
        assert len(payload["items"]) == 2

    def test_products_have_no_service_dates(self, db_session, sample_user, sample_client,
                                            sample_point_of_sale, sample_certificate):
        transport = CapturingTransport()
        InvoiceService(db_session, gateway=ArcaGateway(transport)).create_invoice(
            sample_user.id, invoice_data(sample_client)
        )
        payload = transport.payloads[0]
        assert payload["service_from"] is None
        assert payload["payment_due"] is None

    def test_dni_client_document_type(self, db_session, sample_user, sample_point_of_sale, sample_certificate):
        client = Client(
            user_id=sample_user.id, tax_id=TEST_CUIT, tax_id_type="DNI",
            name="Consumidor", iva_condition="CF",
        )
        db_session.add(client)
        db_session.commit()
        transport = CapturingTransport()
        InvoiceService(db_session, gateway=ArcaGateway(transport)).create_invoice(
            sample_user.id, invoice_data(client, invoice_type=6)
        )
        assert transport.payloads[0]["client_document_type"] == 96

    def test_rejected_invoice(self, db_session, sample_user, sample_client, sample_point_of_sale, sample_certificate):
        service = InvoiceService(db_session, gateway=ArcaGateway(RejectingTransport()))
        invoice = service.create_invoice(sample_user.id, invoice_data(sample_client))

        assert invoice.status == InvoiceStatus.REJECTED
        assert invoice.cae is None
        assert invoice.arca_response["errors"] == [{"code": 10016, "message": "CUIT invalid"}]
        assert invoice.arca_response["observations"][0]["code"] == 10048

        # El número rechazado queda consumido
        approved = InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client))
        assert approved.number == 2

    def test_transport_failure_marks_error(self, db_session, sample_user, sample_client,
                                           sample_point_of_sale, sample_certificate):
        service = InvoiceService(db_session, gateway=ArcaGateway(FailingTransport()))
        with pytest.raises(InvoiceSubmissionFailed) as exc:
            service.create_invoice(sample_user.id, invoice_data(sample_client))

        assert exc.value.status_code == 502
        assert exc.value.detail["invoice_id"] == str(exc.value.invoice_id)

        db_session.expire_all()
        invoice = db_session.get(Invoice, exc.value.invoice_id)
        assert invoice.status == InvoiceStatus.ERROR
        assert "connection reset by peer" in invoice.extra_data["error"]
        assert invoice.cae is None

        retry = InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client))
        assert retry.number == 2

    def test_missing_certificate_after_pending(self, db_session, sample_user, sample_client, sample_point_of_sale):
        with pytest.raises(InvoiceSubmissionFailed) as exc:
            InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client))

        db_session.expire_all()
        invoice = db_session.get(Invoice, exc.value.invoice_id)
        assert invoice.status == InvoiceStatus.ERROR
        assert "certificado" in invoice.extra_data["error"]

    def test_error_keeps_notes(self, db_session, sample_user, sample_client, sample_point_of_sale, sample_certificate):
        service = InvoiceService(db_session, gateway=ArcaGateway(FailingTransport()))
        with pytest.raises(InvoiceSubmissionFailed) as exc:
            service.create_invoice(sample_user.id, invoice_data(sample_client, notes="Urgente"))

        db_session.expire_all()
        metadata = db_session.get(Invoice, exc.value.invoice_id).extra_data
        assert metadata["notes"] == "Urgente"
        assert "error" in metadata


class TestInvoiceIssuanceInput:

    @pytest.mark.parametrize("overrides", [
        {"invoice_type": 99},
        {"concept": 4},
        {"currency": "XYZ"},
        {"exchange_rate": Decimal("0")},
        {"items": [item(vat_rate="19")]},
        {"items": [item(quantity="0")]},
        {"items": [item(unit_price="-1")]},
        {"items": [item(description="   ")]},
    ])
    def test_invalid_input_leaves_no_rows(self, db_session, sample_user, sample_client,
                                          sample_point_of_sale, overrides):
        data = invoice_data(sample_client, **overrides)
        with pytest.raises(InvalidInvoiceInput):
            InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert db_session.query(Invoice).count() == 0

    def test_empty_items(self, db_session, sample_user, sample_client, sample_point_of_sale):
        data = InvoiceCreate(client_id=sample_client.id, invoice_type=1, items=[])
        with pytest.raises(InvalidInvoiceInput):
            InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert db_session.query(InvoiceItem).count() == 0

    def test_zero_total_leaves_no_rows(self, db_session, sample_user, sample_client,
                                       sample_point_of_sale, sample_certificate):
        data = invoice_data(sample_client, items=[item(unit_price="0"), item(unit_price="0", vat_rate="0")])
        with pytest.raises(InvalidInvoiceInput) as exc:
            InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert exc.value.status_code == 400
        assert db_session.query(Invoice).count() == 0
        assert db_session.query(InvoiceItem).count() == 0

    def test_free_line_on_paid_invoice(self, db_session, sample_user, sample_client,
                                       sample_point_of_sale, sample_certificate):
        data = invoice_data(sample_client, items=[item("1", "100", "21"), item(unit_price="0", description="Bonificación")])
        invoice = InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert invoice.status == InvoiceStatus.APPROVED
        assert invoice.total_amount == Decimal("121.00")

    def test_unknown_client(self, db_session, sample_user, sample_client, sample_point_of_sale):
        data = invoice_data(sample_client, client_id=uuid4())
        with pytest.raises(ResourceNotFound):
            InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert db_session.query(Invoice).count() == 0

    def test_foreign_client(self, db_session, other_user, sample_client):
        with pytest.raises(AccessDenied):
            InvoiceService(db_session).create_invoice(other_user.id, invoice_data(sample_client))

    def test_no_point_of_sale(self, db_session, sample_user, sample_client):
        with pytest.raises(ResourceNotFound):
            InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client))
        assert db_session.query(Invoice).count() == 0

    def test_inactive_point_of_sale(self, db_session, sample_user, sample_client, sample_point_of_sale):
        pos = db_session.get(PointOfSale, sample_point_of_sale.id)
        pos.is_active = False
        db_session.commit()
        data = invoice_data(sample_client, point_of_sale_id=pos.id)
        with pytest.raises(InvalidInvoiceInput):
            InvoiceService(db_session).create_invoice(sample_user.id, data)
        assert db_session.query(Invoice).count() == 0

    def test_default_point_of_sale_is_lowest_active(self, db_session, sample_user, sample_client,
                                                    sample_point_of_sale, sample_certificate):
        pos = db_session.get(PointOfSale, sample_point_of_sale.id)
        pos.is_active = False
        for number in (5, 2):
            db_session.add(PointOfSale(user_id=sample_user.id, number=number, name=f"PV {number}", is_production=False))
        db_session.commit()

        invoice = InvoiceService(db_session).create_invoice(sample_user.id, invoice_data(sample_client))
        assert invoice.point_of_sale.number == 2
        assert invoice.formatted_number == "0002-00000001"


# ===== CONSULTAS =====

class TestInvoiceQueries:

    def test_list_filters(self, db_session, sample_user, sample_client, sample_point_of_sale):
        ids = (sample_user.id, sample_client.id, sample_point_of_sale.id)
        make_invoice(db_session, *ids, 1, status=InvoiceStatus.APPROVED, total="100.00",
                     issue_date=date(2024, 1, 10))
        make_invoice(db_session, *ids, 2, status=InvoiceStatus.REJECTED, total="50.00",
                     issue_date=date(2024, 2, 10))
        make_invoice(db_session, *ids, 1, invoice_type=6, status=InvoiceStatus.APPROVED, total="10.00",
                     issue_date=date(2024, 3, 10))
        service = InvoiceService(db_session)

        invoices, total = service.list_invoices(sample_user.id)
        assert total == 3
        assert [i.issue_date for i in invoices] == [date(2024, 3, 10), date(2024, 2, 10), date(2024, 1, 10)]

        approved, total = service.list_invoices(sample_user.id, InvoiceFilters(status=InvoiceStatus.APPROVED))
        assert total == 2

        by_type, _ = service.list_invoices(sample_user.id, InvoiceFilters(invoice_type=6))
        assert [i.number for i in by_type] == [1]

        by_dates, total = service.list_invoices(
            sample_user.id, InvoiceFilters(date_from=date(2024, 2, 1), date_to=date(2024, 2, 28))
        )
        assert total == 1
        assert by_dates[0].status == InvoiceStatus.REJECTED

        by_amount, total = service.list_invoices(sample_user.id, InvoiceFilters(min_amount=Decimal("40")))
        assert total == 2

        page, total = service.list_invoices(sample_user.id, page=2, limit=2)
        assert total == 3
        assert len(page) == 1

    def test_list_is_scoped_to_user(self, db_session, sample_user, other_user, sample_client, sample_point_of_sale):
        make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        invoices, total = InvoiceService(db_session).list_invoices(other_user.id)
        assert (invoices, total) == ([], 0)

    def test_statistics(self, db_session, sample_user, sample_client, sample_point_of_sale):
        ids = (sample_user.id, sample_client.id, sample_point_of_sale.id)
        make_invoice(db_session, *ids, 1, status=InvoiceStatus.APPROVED, total="100.00")
        make_invoice(db_session, *ids, 2, status=InvoiceStatus.APPROVED, total="50.50")
        make_invoice(db_session, *ids, 3, status=InvoiceStatus.REJECTED, total="20.00")
        make_invoice(db_session, *ids, 4, status=InvoiceStatus.ERROR, total="20.00")
        make_invoice(db_session, *ids, 5, total="20.00")

        stats = InvoiceService(db_session).get_statistics(sample_user.id)
        assert stats.total == 5
        assert stats.approved == 2
        assert stats.rejected == 1
        assert stats.error == 1
        assert stats.pending == 1
        assert stats.approved_amount == Decimal("150.50")

        empty = InvoiceService(db_session).get_statistics(sample_user.id, date_from=date.today() + timedelta(days=1))
        assert empty.total == 0
        assert empty.approved_amount == Decimal("0")

    def test_foreign_invoice(self, db_session, sample_user, other_user, sample_client, sample_point_of_sale):
        invoice = make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        with pytest.raises(AccessDenied):
            InvoiceService(db_session).get_invoice(other_user.id, invoice.id)
        with pytest.raises(ResourceNotFound):
            InvoiceService(db_session).get_invoice(sample_user.id, uuid4())


# ===== BARRIDO DE PENDIENTES =====

class TestStalePendingSweep:

    def _age(self, db, invoice, minutes):
        invoice.created_at = datetime.now(timezone.utc) - timedelta(minutes=minutes)
        db.commit()

    def test_expires_only_old_pending(self, db_session, sample_user, sample_client, sample_point_of_sale):
        ids = (sample_user.id, sample_client.id, sample_point_of_sale.id)
        stale = make_invoice(db_session, *ids, 1)
        recent = make_invoice(db_session, *ids, 2)
        old_approved = make_invoice(db_session, *ids, 3, status=InvoiceStatus.APPROVED)
        self._age(db_session, stale, 30)
        self._age(db_session, old_approved, 30)

        assert InvoiceService(db_session).expire_stale_pending(15) == 1

        db_session.expire_all()
        assert db_session.get(Invoice, stale.id).status == InvoiceStatus.ERROR
        assert db_session.get(Invoice, stale.id).extra_data == {"error": "submission timed out"}
        assert db_session.get(Invoice, recent.id).status == InvoiceStatus.PENDING
        assert db_session.get(Invoice, old_approved.id).status == InvoiceStatus.APPROVED

    def test_celery_task(self, db_session, sample_user, sample_client, sample_point_of_sale):
        stale = make_invoice(db_session, sample_user.id, sample_client.id, sample_point_of_sale.id, 1)
        self._age(db_session, stale, 60)

        result = sweep_stale_pending_invoices(15)
        assert result == {"status": "completed", "expired": 1}


# ===== ENDPOINTS =====

def invoice_payload(client_id, **overrides):
    payload = {
        "client_id": str(client_id),
        "invoice_type": 1,
        "items": [{"description": "Desarrollo de software", "quantity": "3", "unit_price": "33.33", "vat_rate": "21"}],
    }
    payload.update(overrides)
    return payload


class TestInvoiceEndpoints:

    def test_create_and_get(self, api_client, auth_headers, sample_client, sample_point_of_sale, sample_certificate):
        response = api_client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["status"] == "APPROVED"
        assert data["formatted_number"] == "0001-00000001"
        assert Decimal(data["total_amount"]) == Decimal("120.99")
        assert len(data["items"]) == 1

        fetched = api_client.get(f"/invoices/{data['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["cae"] == data["cae"]

    def test_invalid_vat_rate_is_400(self, api_client, auth_headers, sample_client, sample_point_of_sale):
        payload = invoice_payload(sample_client.id, items=[
            {"description": "X", "quantity": "1", "unit_price": "10", "vat_rate": "19"}
        ])
        response = api_client.post("/invoices/", json=payload, headers=auth_headers)
        assert response.status_code == 400

    def test_zero_total_is_400(self, api_client, auth_headers, db_session, sample_client,
                               sample_point_of_sale, sample_certificate):
        payload = invoice_payload(sample_client.id, items=[
            {"description": "Sin cargo", "quantity": "2", "unit_price": "0", "vat_rate": "21"}
        ])
        response = api_client.post("/invoices/", json=payload, headers=auth_headers)
        assert response.status_code == 400
        assert db_session.query(Invoice).count() == 0

    def test_slow_submission_does_not_block_other_requests(self, auth_headers, monkeypatch, sample_client,
                                                           sample_point_of_sale, sample_certificate):
        monkeypatch.setattr(arca_dependencies, "gateway", ArcaGateway(SlowTransport()))

        async def issue_and_check_health():
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
                async def timed_health():
                    await asyncio.sleep(0.2)
                    started = time.monotonic()
                    response = await client.get("/health")
                    return response, time.monotonic() - started

                return await asyncio.gather(
                    client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers),
                    timed_health(),
                )

        created, (health, latency) = asyncio.run(issue_and_check_health())
        assert created.status_code == 201
        assert health.status_code == 200
        assert latency < 0.5

    def test_transport_failure_is_502_with_invoice_id(self, api_client, auth_headers, monkeypatch,
                                                      sample_client, sample_point_of_sale, sample_certificate):
        monkeypatch.setattr(arca_dependencies, "gateway", ArcaGateway(FailingTransport()))
        response = api_client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers)
        assert response.status_code == 502
        invoice_id = response.json()["detail"]["invoice_id"]

        fetched = api_client.get(f"/invoices/{invoice_id}", headers=auth_headers).json()
        assert fetched["status"] == "ERROR"
        assert "error" in fetched["metadata"]

    def test_list_and_statistics(self, api_client, auth_headers, monkeypatch,
                                 sample_client, sample_point_of_sale, sample_certificate):
        api_client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers)
        monkeypatch.setattr(arca_dependencies, "gateway", ArcaGateway(RejectingTransport()))
        api_client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers)

        listed = api_client.get("/invoices/", params={"status": "REJECTED"}, headers=auth_headers).json()
        assert listed["total"] == 1
        assert listed["invoices"][0]["number"] == 2

        stats = api_client.get("/invoices/statistics", headers=auth_headers).json()
        assert stats["total"] == 2
        assert stats["approved"] == 1
        assert stats["rejected"] == 1
        assert Decimal(stats["approved_amount"]) == Decimal("120.99")

    def test_arca_status(self, api_client, auth_headers, sample_client, sample_point_of_sale, sample_certificate):
        created = api_client.post("/invoices/", json=invoice_payload(sample_client.id), headers=auth_headers).json()
        response = api_client.get(f"/invoices/{created['id']}/arca-status", headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "APPROVED"
        assert data["authority"]["found"] is False

    def test_last_authorized(self, api_client, auth_headers, sample_point_of_sale, sample_certificate):
        response = api_client.get("/invoices/last-authorized", params={
            "point_of_sale_id": str(sample_point_of_sale.id), "invoice_type": 1,
        }, headers=auth_headers)
        assert response.status_code == 200
        data = response.json()
        assert data["cuit"] == TEST_CUIT
        assert data["point_of_sale_number"] == 1
        assert data["last_number"] == 0

    def test_last_authorized_without_certificate(self, api_client, auth_headers, sample_point_of_sale):
        response = api_client.get("/invoices/last-authorized", params={
            "point_of_sale_id": str(sample_point_of_sale.id), "invoice_type": 1, "cuit": OTHER_CUIT,
        }, headers=auth_headers)
        assert response.status_code == 403

    def test_foreign_invoice_403(self, api_client, db_session, other_user, auth_headers, sample_point_of_sale):
        client = Client(user_id=other_user.id, tax_id=OTHER_CUIT, tax_id_type="CUIT",
                        name="Ajeno", iva_condition="RI")
        db_session.add(client)
        db_session.commit()
        invoice = make_invoice(db_session, other_user.id, client.id, sample_point_of_sale.id, 1)
        assert api_client.get(f"/invoices/{invoice.id}", headers=auth_headers).status_code == 403
