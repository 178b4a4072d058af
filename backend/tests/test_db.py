"""
Repository tests against a MagicMock supabase client.
"""
from unittest.mock import MagicMock

import pytest

from streakdsa.db import claim_milestone, spend_gems


def _client_raising(exc):
    db = MagicMock()
    db.table.return_value.insert.return_value.execute.side_effect = exc
    return db


class TestClaimMilestone:
    def test_first_claim_succeeds(self):
        db = MagicMock()
        assert claim_milestone(db, "user-1234abcd", "streak", 10) is True
        db.table.assert_called_with("granted_milestones")
        db.table.return_value.insert.assert_called_once_with({"user_id": "user-1234abcd", "kind": "streak", "value": 10})

    def test_unique_violation_means_already_granted(self):
        db = _client_raising(Exception('{"code": "23505", "message": "duplicate key value violates unique constraint"}'))
        assert claim_milestone(db, "user-1234abcd", "streak", 10) is False

    def test_other_errors_propagate(self):
        db = _client_raising(RuntimeError("connection reset by peer"))
        with pytest.raises(RuntimeError):
            claim_milestone(db, "user-1234abcd", "streak", 10)


class TestSpendGems:
    def test_debit_applied(self):
        db = MagicMock()
        db.rpc.return_value.execute.return_value.data = 0
        assert spend_gems(db, "user-1234abcd", 50) is True
        db.rpc.assert_called_once_with("spend_gems", {"p_user_id": "user-1234abcd", "p_cost": 50})

    def test_short_balance_returns_false(self):
        db = MagicMock()
        db.rpc.return_value.execute.return_value.data = None
        assert spend_gems(db, "user-1234abcd", 50) is False
