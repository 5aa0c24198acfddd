"""Tests for roundtable/toolkit.py."""

import pytest

from roundtable.models import ContextPriority
from roundtable.toolkit import DebateToolkit


def test_request_context_records_in_order():
    toolkit = DebateToolkit()
    first = toolkit.request_context("alpha", "Budget?", "cost", "required")
    second = toolkit.request_context("beta", "Team size?", "staffing")

    assert first.priority is ContextPriority.REQUIRED
    assert second.priority is ContextPriority.OPTIONAL
    assert toolkit.drain_context_requests() == [first, second]


def test_drain_empties_the_toolkit():
    toolkit = DebateToolkit()
    toolkit.request_context("alpha", "Budget?", "cost")
    toolkit.drain_context_requests()
    assert toolkit.drain_context_requests() == []


def test_unknown_priority_rejected():
    with pytest.raises(ValueError):
        DebateToolkit().request_context("alpha", "Budget?", "cost", "urgent")
