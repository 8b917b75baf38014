"""
Test configuration and fixtures.
"""
import pytest
from flask import g
from flask_login import FlaskLoginClient

from backoffice import create_app
from backoffice.config import TestingConfig
from backoffice.extensions import db, cache_service
from backoffice.models import RoleType
from tests.helpers import FakeRedis, Factory


def _build_app(monkeypatch, tmp_path, database_uri, engine_options):
    monkeypatch.setattr(TestingConfig, 'SQLALCHEMY_DATABASE_URI', database_uri)
    monkeypatch.setattr(TestingConfig, 'SQLALCHEMY_ENGINE_OPTIONS', engine_options)
    monkeypatch.setattr(TestingConfig, 'INVOICE_FOLDER', str(tmp_path / 'invoices'))

    app = create_app('testing')
    app.test_client_class = FlaskLoginClient

    # Requests reuse the test's app context, so g outlives each request
    @app.teardown_request
    def _forget_request_user(exc):
        g.pop('_login_user', None)

    cache_service.client = FakeRedis()
    return app


@pytest.fixture
def app(monkeypatch, tmp_path):
    """Application on an in-memory database with a clean schema per test."""
    app = _build_app(monkeypatch, tmp_path, 'sqlite:///:memory:', {})

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def concurrent_app(monkeypatch, tmp_path):
    """File-backed database so worker threads get their own connections."""
    app = _build_app(
        monkeypatch, tmp_path,
        f"sqlite:///{tmp_path / 'concurrency.db'}",
        {"connect_args": {"timeout": 30, "check_same_thread": False}}
    )

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def session(app):
    return db.session


@pytest.fixture
def factory(app):
    return Factory(db.session)


@pytest.fixture
def fake_redis(app):
    return cache_service.client


@pytest.fixture
def admin(factory):
    return factory.user(role=RoleType.ADMIN, name='Admin')


@pytest.fixture
def staff(factory):
    return factory.user(role=RoleType.STAFF, name='Staff')


@pytest.fixture
def teacher(factory):
    return factory.user(role=RoleType.TEACHER, name='Teacher')


@pytest.fixture
def student(factory):
    return factory.user(role=RoleType.STUDENT, name='Student')
