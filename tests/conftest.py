"""
Shared fixtures: JSON logging for the whole session, a log capture
helper, and small reference categories and event sequences.
"""

import json
import logging
from datetime import date
from io import StringIO

import pytest

from moma_kernel.domain.category import create_category
from moma_kernel.domain.objects import CategoryObject, Morphism
from moma_kernel.logging_config import (
    LOGGER_ROOT,
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from moma_engines.diagrams import full_event_sequence


@pytest.fixture(autouse=True, scope="session")
def _session_logging():
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _no_leftover_context():
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Records emitted under ``moma`` during the test, parsed from JSON.

    ``captured_logs()`` returns every record; ``captured_logs("MOMA_ENGINE_TRACE")``
    only those with that message.
    """
    buffer = StringIO()
    capture = logging.StreamHandler(buffer)
    capture.setFormatter(StructuredFormatter())
    moma = logging.getLogger(LOGGER_ROOT)
    saved_level = moma.level
    moma.setLevel(logging.DEBUG)
    moma.addHandler(capture)

    def records(message: str | None = None) -> list[dict]:
        parsed = [json.loads(line) for line in buffer.getvalue().splitlines() if line]
        if message is None:
            return parsed
        return [r for r in parsed if r["message"] == message]

    yield records

    moma.removeHandler(capture)
    moma.setLevel(saved_level)


@pytest.fixture
def objects_abc():
    return CategoryObject("A"), CategoryObject("B"), CategoryObject("C")


@pytest.fixture
def chain_category(objects_abc):
    """A -f-> B -g-> C with the composite g after f stored."""
    a, b, c = objects_abc
    f = Morphism(a, b, "f", 10)
    g = Morphism(b, c, "g", 10)
    gf = Morphism(a, c, "f∘g", 10)
    return create_category({a, b, c}, [f, g, gf], name="chain")


@pytest.fixture
def open_chain_category(objects_abc):
    """A -f-> B -g-> C without the composite."""
    a, b, c = objects_abc
    return create_category(
        {a, b, c},
        [Morphism(a, b, "f", 10), Morphism(b, c, "g", 10)],
        name="open_chain",
    )


@pytest.fixture
def reference_sequence():
    """The six-event cycle: money 1000, loans 200, price 100."""
    return full_event_sequence(1000, 200, 100, date(2025, 1, 15))
