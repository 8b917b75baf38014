# services/invoice_service.py
"""
Invoice generation for approved payments.

Runs as post-commit work: it opens its own transaction, never the one that
approved the payment. At most one invoice exists per payment.
"""

import logging
import os
from datetime import datetime, time, timedelta

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from backoffice.errors import NotFoundError, InvalidStatusError
from backoffice.extensions import db
from backoffice.models.payment import Payment, PaymentStatus, Invoice
from backoffice.services.invoice_pdf import InvoicePDFGenerator
from backoffice.utils.transactions import run_in_transaction


class InvoiceService:
    """Service class for invoice numbering, rendering and storage."""

    logger = logging.getLogger('invoice_service')

    @staticmethod
    def next_invoice_number(session, now=None):
        """INV-YYYYMMDD-XXXX, where XXXX is today's invoice count + 1."""
        now = now or datetime.now()
        day_start = datetime.combine(now.date(), time.min)
        day_end = day_start + timedelta(days=1)

        count = (
            session.query(func.count(Invoice.id))
            .filter(Invoice.generated_at >= day_start, Invoice.generated_at < day_end)
            .scalar()
        )
        return f"INV-{now.strftime('%Y%m%d')}-{count + 1:04d}"

    @staticmethod
    def _pdf_generator():
        config = current_app.config
        return InvoicePDFGenerator(
            config['INVOICE_INSTITUTION_NAME'],
            config['INVOICE_CONTACT_EMAIL'],
            config['INVOICE_CURRENCY_SYMBOL']
        )

    @staticmethod
    def _existing(session, payment_id):
        return session.query(Invoice).filter_by(payment_id=payment_id).first()

    @staticmethod
    def create_invoice(session, payment_id, generated_by=None):
        """
        Generate and attach the invoice of an approved payment.

        Returns the already attached invoice when there is one. A collision on
        the invoice number (two generators counting the same day) is retried
        with a fresh count.

        Raises:
            NotFoundError: payment missing
            InvalidStatusError: payment not APPROVED

        Returns:
            dict: the invoice
        """
        folder = current_app.config['INVOICE_FOLDER']
        retries = current_app.config.get('INVOICE_NUMBER_RETRIES', 3)
        os.makedirs(folder, exist_ok=True)

        for attempt in range(1, retries + 1):
            written = {}

            def work(tx):
                existing = InvoiceService._existing(tx, payment_id)
                if existing:
                    return existing.to_dict()

                payment = tx.get(Payment, payment_id)
                if not payment:
                    raise NotFoundError('Payment not found', payment_id=payment_id)
                if payment.status != PaymentStatus.APPROVED:
                    raise InvalidStatusError(
                        'Invoices can only be generated for approved payments',
                        payment_id=payment_id, status=payment.status.value
                    )

                now = datetime.now()
                invoice_number = InvoiceService.next_invoice_number(tx, now)
                invoice = Invoice(
                    payment_id=payment.id,
                    invoice_number=invoice_number,
                    amount=payment.amount,
                    pdf_path=f"invoices/{invoice_number}.pdf",
                    generated_by=generated_by,
                    generated_at=now
                )
                tx.add(invoice)
                tx.flush()

                pdf_bytes = InvoiceService._pdf_generator().render(invoice_number, now, payment)
                file_path = os.path.join(folder, f"{invoice_number}.pdf")
                with open(file_path, 'wb') as f:
                    f.write(pdf_bytes)
                written['path'] = file_path

                return invoice.to_dict()

            try:
                result = run_in_transaction(session, work)
            except IntegrityError as e:
                InvoiceService._remove_file(written.get('path'))
                existing = InvoiceService._existing(session, payment_id)
                if existing:
                    return existing.to_dict()
                InvoiceService.logger.warning(
                    f"Invoice number collision for payment {payment_id} (attempt {attempt}): {e.orig}"
                )
                continue
            except Exception:
                InvoiceService._remove_file(written.get('path'))
                raise

            if written:
                InvoiceService.logger.info(
                    f"Invoice {result['invoice_number']} generated for payment {payment_id}"
                )
            return result

        raise RuntimeError(f"Could not allocate an invoice number for payment {payment_id}")

    @staticmethod
    def _remove_file(path):
        if path and os.path.exists(path):
            os.remove(path)

    @staticmethod
    def generate_after_approval(payment_id, generated_by):
        """Post-commit task body. Runs in whichever app context the dispatcher provides."""
        return InvoiceService.create_invoice(db.session, payment_id, generated_by)

    @staticmethod
    def pending_invoices(session):
        """Approved payments that still have no invoice."""
        return (
            session.query(Payment)
            .outerjoin(Invoice, Invoice.payment_id == Payment.id)
            .filter(Payment.status == PaymentStatus.APPROVED, Invoice.id.is_(None))
            .order_by(Payment.approved_at.asc())
            .all()
        )
