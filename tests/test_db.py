"""Tests for signal_core/db.py"""

from datetime import datetime, timezone
from unittest.mock import MagicMock


def _client(data=None, error=None):
    client = MagicMock()
    query = client.table.return_value
    for method in ("select", "eq", "gte", "order", "limit", "upsert", "insert"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = MagicMock(data=data)
    return client


class TestSignalDB:
    def test_offline_is_noop(self):
        from signal_core.db import SignalDB
        db = SignalDB(client=None)
        db._client = None
        assert db.connected is False
        assert db.get_analysis_params("u1") is None
        assert db.get_closed_trades("u1", datetime.now(timezone.utc)) == []
        assert db.upsert_analysis_params("u1", {}) is False

    def test_get_analysis_params(self):
        from signal_core.db import SignalDB
        client = _client([{"user_id": "u1", "max_leverage": 3}])
        assert SignalDB(client).get_analysis_params("u1")["max_leverage"] == 3
        client.table.assert_called_with("analysis_params")

    def test_upsert_adds_user_and_timestamp(self):
        from signal_core.db import SignalDB
        client = _client([])
        assert SignalDB(client).upsert_analysis_params("u1", {"max_leverage": 4}) is True
        query = client.table.return_value
        row = query.upsert.call_args[0][0]
        assert row["user_id"] == "u1" and "updated_at" in row
        assert query.upsert.call_args[1] == {"on_conflict": "user_id"}

    def test_closed_trades_query(self):
        from signal_core.db import SignalDB
        client = _client([{"id": 1}])
        since = datetime(2026, 1, 1, tzinfo=timezone.utc)
        assert SignalDB(client).get_closed_trades("u1", since) == [{"id": 1}]
        query = client.table.return_value
        query.eq.assert_any_call("status", "closed")
        query.gte.assert_called_once_with("created_at", since.isoformat())

    def test_errors_are_logged_not_raised(self):
        from signal_core.db import SignalDB
        db = SignalDB(_client(error=RuntimeError("timeout")))
        assert db.get_user_settings("u1") is None
        assert db.list_user_ids() == []
        assert db.log_signal({"symbol": "BTCUSDT"}) is False

    def test_log_signal_row(self):
        from signal_core.db import SignalDB
        client = _client([])
        SignalDB(client).log_signal({"symbol": "BTCUSDT", "direction": "LONG", "take_profit_2": 108.0})
        row = client.table.return_value.insert.call_args[0][0]
        assert row["take_profit"] == 108.0
        client.table.assert_called_with("signal_log")
