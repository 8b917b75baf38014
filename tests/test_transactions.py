import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from backoffice.errors import NotFoundError
from backoffice.models import Course
from backoffice.utils.transactions import is_transient_error, run_in_transaction


class _PgError(Exception):
    def __init__(self, pgcode):
        super().__init__(pgcode)
        self.pgcode = pgcode


def _operational(orig):
    return OperationalError('UPDATE ...', {}, orig)


@pytest.mark.parametrize('error, expected', [
    (_operational(Exception('database is locked')), True),
    (_operational(_PgError('40001')), True),
    (_operational(_PgError('40P01')), True),
    (_operational(Exception(1213, 'Deadlock found')), True),
    (_operational(Exception(1205, 'Lock wait timeout exceeded')), True),
    (_operational(Exception('no such table: users')), False),
    (IntegrityError('INSERT ...', {}, Exception('UNIQUE constraint failed')), False),
    (ValueError('not a database error'), False),
])
def test_is_transient_error(error, expected):
    assert is_transient_error(error) is expected


def test_commits_on_success(session):
    def work(tx):
        course = Course(title='Networking')
        tx.add(course)
        return course.title

    assert run_in_transaction(session, work) == 'Networking'
    session.expire_all()
    assert session.query(Course).filter_by(title='Networking').count() == 1


def test_retries_transient_errors_then_succeeds(session):
    attempts = []

    def work(tx):
        attempts.append(1)
        if len(attempts) < 3:
            raise _operational(Exception('database is locked'))
        tx.add(Course(title='Retried'))
        return 'done'

    assert run_in_transaction(session, work, retries=3, delay=0) == 'done'
    assert len(attempts) == 3
    assert session.query(Course).filter_by(title='Retried').count() == 1


def test_gives_up_after_configured_retries(session):
    attempts = []

    def work(tx):
        attempts.append(1)
        raise _operational(Exception('database is locked'))

    with pytest.raises(OperationalError):
        run_in_transaction(session, work, retries=2, delay=0)

    assert len(attempts) == 3


def test_business_errors_roll_back_without_retry(session):
    attempts = []

    def work(tx):
        attempts.append(1)
        tx.add(Course(title='Never committed'))
        tx.flush()
        raise NotFoundError('Batch not found')

    with pytest.raises(NotFoundError):
        run_in_transaction(session, work)

    assert len(attempts) == 1
    assert session.query(Course).count() == 0
