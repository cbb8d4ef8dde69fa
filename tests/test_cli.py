"""Tests for run_full_scan.py"""

import json
from unittest.mock import patch


class TestCLI:
    def test_risk_command(self, capsys):
        from run_full_scan import main
        code = main(["risk", "--entry", "100", "--stop", "95", "--target", "110",
                     "--leverage", "5", "--capital", "1000"])
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["liquidation_price"] == 82.0

    def test_invalid_risk_inputs(self, capsys):
        from run_full_scan import main
        code = main(["risk", "--entry", "100", "--stop", "95", "--target", "110",
                     "--leverage", "0", "--capital", "1000"])
        assert code == 1

    @patch("run_full_scan.analyze")
    def test_no_data(self, mock_analyze, capsys):
        from run_full_scan import main
        from signal_core.exceptions import NoDataError
        mock_analyze.side_effect = NoDataError("FOOUSDT", "empty 1h candles")
        assert main(["analyze", "FOOUSDT"]) == 1
        assert "FOOUSDT" in capsys.readouterr().err

    @patch("run_full_scan.analyze")
    def test_daily_loss_blocked(self, mock_analyze, capsys):
        from run_full_scan import main
        from signal_core.exceptions import DailyLossLimitError
        mock_analyze.side_effect = DailyLossLimitError(45.0, 10.0, 50.0)
        assert main(["analyze", "BTCUSDT", "--user-id", "u1"]) == 2
        mock_analyze.assert_called_once_with(
            "BTCUSDT", trade_type=None, target_duration_minutes=None,
            capital_percent=None, user_id="u1",
        )

    @patch("run_full_scan.run_learning_engine")
    def test_learn(self, mock_learn, capsys):
        from run_full_scan import main
        mock_learn.return_value = {"status": "insufficient_data", "trade_count": 4}
        assert main(["learn", "u1"]) == 0
        assert json.loads(capsys.readouterr().out)["status"] == "insufficient_data"

    @patch("run_full_scan.get_market_data")
    def test_candles_json(self, mock_source, capsys):
        from run_full_scan import main
        from tests.conftest import FakeSource, make_candles, trending
        mock_source.return_value = FakeSource({("ETHUSDT", "4h"): make_candles(trending(30), "ETHUSDT", "4h")})
        assert main(["--json", "candles", "ETHUSDT", "--timeframe", "4h"]) == 0
        rows = json.loads(capsys.readouterr().out)
        assert len(rows) == 30
        assert rows[-1]["close"] == 114.5
        assert rows[-1]["volume_ratio"] == 1.0

    @patch("run_full_scan.get_market_data")
    def test_candles_csv(self, mock_source, tmp_path, capsys):
        import pandas as pd
        from run_full_scan import main
        from tests.conftest import FakeSource, make_candles, trending
        mock_source.return_value = FakeSource({("BTCUSDT", "1h"): make_candles(trending(25))})
        out = tmp_path / "btc.csv"
        assert main(["candles", "BTCUSDT", "--csv", str(out)]) == 0
        df = pd.read_csv(out)
        assert list(df.columns) == ["timestamp", "open", "high", "low", "close", "volume",
                                    "change_pct", "volume_ratio"]
        assert len(df) == 25
        assert "BTCUSDT 1h" in capsys.readouterr().out

    @patch("run_full_scan.get_market_data")
    def test_candles_no_data(self, mock_source, capsys):
        from run_full_scan import main
        from tests.conftest import FakeSource
        mock_source.return_value = FakeSource()
        assert main(["candles", "FOOUSDT"]) == 1
