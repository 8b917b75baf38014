import os
from datetime import datetime, timedelta

import pytest

from backoffice.errors import InvalidStatusError, NotFoundError
from backoffice.models import Invoice, PaymentStatus
from backoffice.services.invoice_service import InvoiceService


def _today_prefix():
    return f"INV-{datetime.now().strftime('%Y%m%d')}"


class TestInvoiceNumbering:

    def test_numbers_follow_daily_sequence(self, session, factory, admin):
        first = factory.payment(status=PaymentStatus.APPROVED)
        second = factory.payment(status=PaymentStatus.APPROVED)

        a = InvoiceService.create_invoice(session, first.id, admin.id)
        b = InvoiceService.create_invoice(session, second.id, admin.id)

        assert a['invoice_number'] == f'{_today_prefix()}-0001'
        assert b['invoice_number'] == f'{_today_prefix()}-0002'

    def test_previous_days_do_not_count(self, session, factory):
        old_payment = factory.payment(status=PaymentStatus.APPROVED)
        yesterday = datetime.now() - timedelta(days=1)
        session.add(Invoice(
            payment_id=old_payment.id,
            invoice_number=f"INV-{yesterday.strftime('%Y%m%d')}-0001",
            amount=old_payment.amount,
            pdf_path='invoices/old.pdf',
            generated_at=yesterday
        ))
        session.commit()

        assert InvoiceService.next_invoice_number(session) == f'{_today_prefix()}-0001'

    def test_number_collision_retries_with_fresh_count(self, session, factory, admin, monkeypatch):
        first = factory.payment(status=PaymentStatus.APPROVED)
        second = factory.payment(status=PaymentStatus.APPROVED)
        taken = InvoiceService.create_invoice(session, first.id, admin.id)['invoice_number']

        real_next = InvoiceService.next_invoice_number
        calls = []

        def stale_then_real(tx, now=None):
            calls.append(now)
            if len(calls) == 1:
                return taken
            return real_next(tx, now)

        monkeypatch.setattr(InvoiceService, 'next_invoice_number', staticmethod(stale_then_real))

        result = InvoiceService.create_invoice(session, second.id, admin.id)

        assert len(calls) == 2
        assert result['invoice_number'] == f'{_today_prefix()}-0002'
        assert session.query(Invoice).count() == 2


class TestCreateInvoice:

    def test_writes_pdf_under_invoice_folder(self, app, session, factory, admin):
        payment = factory.payment(status=PaymentStatus.APPROVED)

        result = InvoiceService.create_invoice(session, payment.id, admin.id)

        path = os.path.join(app.config['INVOICE_FOLDER'], f"{result['invoice_number']}.pdf")
        with open(path, 'rb') as f:
            assert f.read(4) == b'%PDF'
        assert result['pdf_path'] == f"invoices/{result['invoice_number']}.pdf"
        assert result['generated_by'] == admin.id
        assert result['amount'] == '1500.00'

    def test_at_most_one_invoice_per_payment(self, session, factory, admin):
        payment = factory.payment(status=PaymentStatus.APPROVED)

        first = InvoiceService.create_invoice(session, payment.id, admin.id)
        second = InvoiceService.create_invoice(session, payment.id, admin.id)

        assert first['id'] == second['id']
        assert session.query(Invoice).filter_by(payment_id=payment.id).count() == 1

    def test_requires_approved_payment(self, session, factory, admin):
        payment = factory.payment()

        with pytest.raises(InvalidStatusError):
            InvoiceService.create_invoice(session, payment.id, admin.id)

        assert session.query(Invoice).count() == 0

    def test_missing_payment(self, session, admin):
        with pytest.raises(NotFoundError):
            InvoiceService.create_invoice(session, 'missing', admin.id)

    def test_pending_invoices_lists_approved_payments_without_invoice(self, session, factory, admin):
        invoiced = factory.payment(status=PaymentStatus.APPROVED)
        waiting = factory.payment(status=PaymentStatus.APPROVED)
        factory.payment()
        InvoiceService.create_invoice(session, invoiced.id, admin.id)

        pending = InvoiceService.pending_invoices(session)

        assert [payment.id for payment in pending] == [waiting.id]
