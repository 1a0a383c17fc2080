"""Tests for the command-line entry point."""
import os
from datetime import date

import pytest

import main
from models.enums import MarketRegime, TradingMode


@pytest.mark.unit
class TestParser:
    """Argument parsing."""

    def test_export_filters(self):
        args = main.build_parser().parse_args([
            "export", "--asset", "BTCUSDT", "--mode", "autopilot", "--regime", "BULLISH", "--days", "7"
        ])

        assert args.command == "export"
        assert args.mode == TradingMode.AUTOPILOT
        assert args.regime == MarketRegime.BULLISH
        assert args.days == 7

    def test_summary_date(self):
        args = main.build_parser().parse_args(["summary", "--date", "2025-01-01"])
        assert args.date == date(2025, 1, 1)

    def test_bad_date(self):
        with pytest.raises(SystemExit):
            main.build_parser().parse_args(["summary", "--date", "01/01/2025"])


@pytest.mark.unit
class TestCommands:
    """export and summary against a file-backed store."""

    @pytest.fixture
    def file_config(self, mock_config, tmp_path):
        mock_config.database.url = f"sqlite:///{tmp_path}/trades.db"
        return mock_config

    def test_export(self, file_config, tmp_path, make_trade):
        main.DatabaseManager(file_config).save_trade(make_trade())
        args = main.build_parser().parse_args(["export", "--asset", "btcusdt", "--output-dir", str(tmp_path)])

        path = main.export_command(file_config, args)

        assert os.path.dirname(path) == str(tmp_path)
        with open(path, encoding="utf-8") as f:
            lines = f.read().split("\n")
        assert len(lines) == 2
        assert ",BTCUSDT,AUTO_BUY," in lines[1]

    def test_summary(self, file_config, make_trade, capsys):
        main.DatabaseManager(file_config).save_trade(make_trade())
        args = main.build_parser().parse_args(["summary", "--date", "2025-01-01"])

        main.summary_command(file_config, args)

        output = capsys.readouterr().out
        assert "Trades on 2025-01-01: 1" in output
        assert "Total P&L: -200.00" in output
        assert "mode AUTOPILOT: 1" in output
