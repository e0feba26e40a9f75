"""
Shared fixtures and step definitions for BDD tests.

- runner, context, studio: available to all scenario files in this directory
- open_studio is patched (autouse) to yield the scenario's fake studio
- no_logging: autouse, prevents log file creation during tests
- 'the output contains' step: shared across all feature files
"""

from contextlib import asynccontextmanager
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner
from pytest_bdd import given, then, parsers

from omnitrack.models import Session, Snapshot


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def context():
    """Mutable dict shared between Given/When/Then steps within a scenario."""
    return {}


@pytest.fixture
def studio():
    """Signed-in fake studio; Given steps fill in studio.controller.snapshot."""
    controller = MagicMock()
    controller.snapshot = Snapshot()
    controller.degraded = False
    controller.error = None
    controller.budget_limits.return_value = {}

    mutations = MagicMock()
    mutations.invoices.create = AsyncMock(side_effect=lambda record: record)

    return SimpleNamespace(
        session=Session(user_id='acct-1', access_token='tok'),
        bootstrapper=SimpleNamespace(slow_connection=False),
        controller=controller,
        mutations=mutations,
        local_state=MagicMock(),
    )


@pytest.fixture(autouse=True)
def fake_open_studio(studio):
    @asynccontextmanager
    async def _open(*args, **kwargs):
        yield studio

    with patch("omnitrack.cli.main.open_studio", _open):
        yield


@pytest.fixture(autouse=True)
def no_logging():
    with patch("omnitrack.cli.main.configure_logging"):
        yield


@given("the studio is signed out")
def signed_out(studio):
    studio.session = None


@then(parsers.parse('the output contains "{text}"'))
def output_contains(context, text):
    assert text in context["result"].output, (
        f"Expected {text!r} in output:\n{context['result'].output}"
    )


@then(parsers.parse('the output does not contain "{text}"'))
def output_not_contains(context, text):
    assert text not in context["result"].output, (
        f"Did not expect {text!r} in output:\n{context['result'].output}"
    )
