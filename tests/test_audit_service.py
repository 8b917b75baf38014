from datetime import datetime
from decimal import Decimal

import pytest

from backoffice.errors import InvalidSequenceError
from backoffice.models import AuditLog, PaymentStatus
from backoffice.services.audit_service import AuditService
from backoffice.utils.transactions import run_in_transaction


def test_record_stores_json_safe_snapshots(session, admin):
    approved_at = datetime(2025, 1, 2, 9, 30)

    AuditService.record(
        session, admin.id, 'PAYMENT_APPROVED', 'payment', 'p1',
        old_value={'status': PaymentStatus.PENDING},
        new_value={'status': PaymentStatus.APPROVED, 'approved_at': approved_at, 'amount': Decimal('10.50')}
    )
    session.commit()

    entry = session.query(AuditLog).one()
    assert entry.old_value == {'status': 'PENDING'}
    assert entry.new_value == {'status': 'APPROVED', 'approved_at': '2025-01-02T09:30:00', 'amount': '10.50'}


def test_entry_rolls_back_with_the_business_change(session, admin):
    def work(tx):
        AuditService.record(tx, admin.id, 'REGISTRATION_APPROVED', 'registration', 'r1')
        raise InvalidSequenceError()

    with pytest.raises(InvalidSequenceError):
        run_in_transaction(session, work)

    assert session.query(AuditLog).count() == 0


def test_entity_history_newest_first(session, admin):
    for action in ('REGISTRATION_ACADEMIC_REVIEWED', 'REGISTRATION_FINANCIAL_VERIFIED'):
        AuditService.record(session, admin.id, action, 'registration', 'r1')
        session.commit()
    AuditService.record(session, admin.id, 'PAYMENT_APPROVED', 'payment', 'p1')
    session.commit()

    history = AuditService.entity_history(session, 'registration', 'r1')

    assert [entry['action'] for entry in history] == [
        'REGISTRATION_FINANCIAL_VERIFIED',
        'REGISTRATION_ACADEMIC_REVIEWED',
    ]
    assert history[0]['user_id'] == admin.id
