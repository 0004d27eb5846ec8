"""Tests for the command line interface."""

import json

import pytest

from timesheet_payroll.cli import PayrollCli


class TestLastPeriodCommand:
    """Test the offline last-period command."""

    def test_prints_weekly_period_as_json(self, capsys):
        exit_code = PayrollCli().run(
            [
                "last-period",
                "--frequency",
                "weekly",
                "--anchor-day-of-week",
                "1",
                "--reference-date",
                "2024-01-17",
                "--json",
            ]
        )

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {"start": "2024-01-08", "end": "2024-01-15"}

    def test_semimonthly_needs_no_anchor(self, capsys):
        exit_code = PayrollCli().run(
            ["last-period", "--frequency", "semimonthly", "--reference-date", "2024-02-03"]
        )

        assert exit_code == 0
        output = capsys.readouterr().out
        assert "2024-01-16" in output
        assert "2024-02-01" in output

    def test_missing_anchor_fails(self, capsys):
        exit_code = PayrollCli().run(
            ["last-period", "--frequency", "monthly", "--reference-date", "2024-01-17"]
        )

        assert exit_code == 1
        assert "missing a valid anchor" in capsys.readouterr().err

    def test_no_command_prints_help(self, capsys):
        assert PayrollCli().run([]) == 1

    def test_unknown_frequency_rejected(self):
        with pytest.raises(SystemExit):
            PayrollCli().run(["last-period", "--frequency", "hourly"])
