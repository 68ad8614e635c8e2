import pytest
from click.testing import CliRunner
from openpyxl import Workbook

from tests.conftest import _write_csv
from recon.export import MATCHED_CSV, UNMATCHED_CREDITS_CSV
from scripts.cli import main


@pytest.fixture
def runner(tmp_path, monkeypatch):
    """CliRunner inside an empty directory with no RECON_* overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ("RECON_DAYS", "RECON_THRESHOLD", "RECON_DATE_FORMAT"):
        monkeypatch.delenv(name, raising=False)
    return CliRunner()


class TestRun:
    """Tests for ``recon run``."""

    def test_report_and_csv_outputs(self, runner, tmp_path, ledger_files):
        credits, debits = ledger_files
        out_dir = tmp_path / "out"

        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), "-o", str(out_dir)]
        )

        assert result.exit_code == 0, result.output
        assert "Credit: C1 (100.00) - Debit: D1 (100.00)" in result.output
        assert "Credits: C2, C3 - Debit: D2 (Difference: 0.00)" in result.output
        assert "C4, 75.25" in result.output
        assert "D3, 5000.00" in result.output
        assert (out_dir / MATCHED_CSV).read_text().startswith(
            "Transaction No,Value,Type\nC1,100.00,credit\nD1,100.00,debit\n\n"
        )
        assert "C4,75.25,credit" in (out_dir / UNMATCHED_CREDITS_CSV).read_text()

    def test_stdout_carries_only_the_report(self, runner, ledger_files):
        credits, debits = ledger_files
        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), "--no-csv"]
        )

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("Matched Transactions:\n")
        assert "Reconciled" not in result.stdout
        assert "Reconciled" in result.stderr

    def test_wide_row_late_in_file(self, runner, tmp_path, ledger_files):
        _, debits = ledger_files
        lines = [f"C{i},1/2/2024,1.00" for i in range(3000)]
        lines.append("CX,1/3/2024,50.00,note")
        credits = _write_csv(tmp_path / "wide.csv", lines)

        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), "--no-csv"]
        )

        assert result.exit_code == 0, result.output
        assert result.stdout.startswith("Matched Transactions:\n")

    def test_invalid_utf8_is_not_a_crash(self, runner, tmp_path, ledger_files):
        _, debits = ledger_files
        credits = tmp_path / "bytes.csv"
        credits.write_bytes(b"C1,1/2/2024,100.00\nC\xff2,1/3/2024,20.00\n")

        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), "--no-csv"]
        )

        assert result.exit_code in (0, 1), result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)
        if result.exit_code == 1:
            assert "bytes.csv" in result.output

    def test_defaults_to_current_directory(self, runner, tmp_path, ledger_files):
        credits, debits = ledger_files
        result = runner.invoke(main, ["run", "-c", str(credits), "-d", str(debits)])

        assert result.exit_code == 0, result.output
        assert (tmp_path / MATCHED_CSV).exists()

    def test_no_csv(self, runner, tmp_path, ledger_files):
        credits, debits = ledger_files
        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), "--no-csv", "-q"]
        )

        assert result.exit_code == 0, result.output
        assert not (tmp_path / MATCHED_CSV).exists()

    def test_narrow_window_changes_result(self, runner, ledger_files):
        credits, debits = ledger_files
        result = runner.invoke(
            main,
            ["run", "-c", str(credits), "-d", str(debits), "--days", "0", "-t", "0", "--no-csv"],
        )

        assert result.exit_code == 0, result.output
        # C1 and D1 share a value date, so the exact pair survives
        assert "Credit: C1 (100.00) - Debit: D1 (100.00)" in result.output

    @pytest.mark.parametrize(
        "args, message",
        [
            (["--days", "-1"], "days"),
            (["--days", "seven"], "days"),
            (["-t", "abc"], "threshold"),
        ],
    )
    def test_invalid_parameters(self, runner, ledger_files, args, message):
        credits, debits = ledger_files
        result = runner.invoke(
            main, ["run", "-c", str(credits), "-d", str(debits), *args]
        )

        assert result.exit_code == 1
        assert message in result.output.lower()

    def test_missing_ledger(self, runner, tmp_path, ledger_files):
        _, debits = ledger_files
        result = runner.invoke(
            main, ["run", "-c", str(tmp_path / "nope.csv"), "-d", str(debits)]
        )

        assert result.exit_code == 1
        assert "nope.csv" in result.output

    def test_xlsx_db_and_show(self, runner, tmp_path, ledger_files):
        credits, debits = ledger_files
        xlsx = tmp_path / "recon.xlsx"
        db = tmp_path / "recon.db"

        result = runner.invoke(
            main,
            [
                "run",
                "-c", str(credits),
                "-d", str(debits),
                "--no-csv",
                "--xlsx", str(xlsx),
                "--db", str(db),
            ],
        )
        assert result.exit_code == 0, result.output
        assert xlsx.exists()

        shown = runner.invoke(main, ["show", str(db)])
        assert shown.exit_code == 0, shown.output
        assert "days: 7" in shown.output
        assert "exact_matches: 1" in shown.output
        assert "aggregate_matches: 1" in shown.output
        assert "matched: 5 rows" in shown.output
        assert "unmatched_debits: 1 rows" in shown.output

    def test_existing_db_needs_confirmation(self, runner, tmp_path, ledger_files):
        credits, debits = ledger_files
        db = tmp_path / "recon.db"
        db.write_text("")

        result = runner.invoke(
            main,
            ["run", "-c", str(credits), "-d", str(debits), "--db", str(db)],
            input="n\n",
        )
        assert result.exit_code == 1
        assert db.read_text() == ""


class TestShow:
    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(main, ["show", str(tmp_path / "none.db")])
        assert result.exit_code == 1
        assert "not found" in result.output


class TestClean:
    """Tests for ``recon clean``."""

    def test_writes_both_sides(self, runner, tmp_path):
        wb = Workbook()
        ws1 = wb.active
        ws1.title = "Sheet1"
        ws1.append(["banner"])
        ws1.append(["C1"] + [None] * 23 + ["1/2/2024"] + [None] * 12 + ["1,000.00"])
        ws1.append(["footer"])
        ws2 = wb.create_sheet("Sheet2")
        ws2.append(["banner"])
        ws2.append(["D1"] + [None] * 23 + ["1/2/2024"] + [None] * 12 + ["-1,000.00"])
        ws2.append(["D2"] + [None] * 23 + ["1/3/2024"] + [None] * 12 + ["5"])
        ws2.append(["footer"])
        statement = tmp_path / "statement.xlsx"
        wb.save(statement)

        out_dir = tmp_path / "data"
        result = runner.invoke(
            main,
            [
                "clean",
                str(statement),
                "-o", str(out_dir),
                "--header-rows", "1",
                "--footer-rows", "1",
            ],
        )

        assert result.exit_code == 0, result.output
        assert "(1 rows)" in result.output
        assert "(2 rows)" in result.output
        assert (out_dir / "credits.csv").read_text() == "C1,1/2/2024,1000\n"
        assert (out_dir / "debits.csv").read_text().splitlines() == [
            "D1,1/2/2024,1000",
            "D2,1/3/2024,5",
        ]

    def test_not_a_workbook(self, runner, tmp_path):
        bogus = tmp_path / "statement.xlsx"
        bogus.write_text("plain text")
        result = runner.invoke(main, ["clean", str(bogus)])
        assert result.exit_code == 1
        assert "workbook" in result.output
