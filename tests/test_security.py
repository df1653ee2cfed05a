"""
Tests for startup secret checks.
"""

import pytest
from app import create_app
from utils.security import MissingSecretsError, check_secrets
from tests import setup_test_environment


@pytest.fixture
def environment(monkeypatch):
    setup_test_environment()
    monkeypatch.delenv('ADMIN_API_TOKEN', raising=False)
    monkeypatch.delenv('REDIS_URL', raising=False)
    return monkeypatch


def test_all_required_present(environment):
    environment.setenv('ADMIN_API_TOKEN', 'token')

    result = check_secrets()

    assert result == {'missing_required': [], 'optional_available': ['ADMIN_API_TOKEN']}


def test_missing_required_raises(environment):
    environment.delenv('SESSION_SECRET')

    with pytest.raises(MissingSecretsError) as exc_info:
        check_secrets()

    assert exc_info.value.missing == ['SESSION_SECRET']


def test_missing_required_reported_when_not_required(environment):
    environment.delenv('DATABASE_URL')

    assert check_secrets(require=False)['missing_required'] == ['DATABASE_URL']


def test_create_app_refuses_to_start_without_secrets(environment):
    environment.delenv('SESSION_SECRET')

    with pytest.raises(MissingSecretsError):
        create_app()

    # Tests may run without secrets
    assert create_app(testing=True).config['TESTING'] is True
