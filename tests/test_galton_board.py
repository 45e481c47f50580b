"""Tests for the command-line front end."""

import csv

import matplotlib
import pytest

import galton_board
from galton_sim import SimulationCancelled, SimulationResult, SimulationTimeout


def make_result(counts, trials=None):
    total = sum(counts)
    return SimulationResult(
        trials=total if trials is None else trials,
        bins=len(counts),
        counts=list(enumerate(counts)),
        total=total,
        pool_width=1,
        elapsed=0.0,
    )


class TestArguments:
    """Argument parsing and validation."""

    def test_no_arguments_prints_usage(self, capsys):
        assert galton_board.main([]) == 2
        assert "usage:" in capsys.readouterr().out

    @pytest.mark.parametrize(
        "argv",
        [
            ["-numThreads", "0", "-numBins", "4"],
            ["-numThreads", "10", "-numBins", "3"],
            ["-numThreads", "10", "-numBins", "0"],
            ["-numThreads", "10", "-numBins", "4", "-awaitTime", "0"],
            ["-numBins", "4"],
            ["-numThreads", "ten", "-numBins", "4"],
        ],
    )
    def test_invalid_arguments_exit(self, argv):
        with pytest.raises(SystemExit) as info:
            galton_board.main(argv)
        assert info.value.code == 2

    def test_aliases_and_default_budget(self):
        ap = galton_board.build_parser()
        config, _ = galton_board.parse_config(ap, ["--trials", "5", "--bins", "6"])
        assert (config.trials, config.bins, config.time_budget) == (5, 6, 30.0)

        config, _ = galton_board.parse_config(
            ap, ["--numThreads", "7", "--numBins", "2", "--awaitTime", "3"]
        )
        assert (config.trials, config.bins, config.time_budget) == (7, 2, 3.0)


class TestReport:
    """Report formatting."""

    def test_equal_sums(self):
        lines = galton_board.format_report(make_result([1, 3, 4, 0]))
        assert lines[:4] == ["0\t1", "1\t3", "2\t4", "3\t0"]
        assert lines[4] == "Number of requested balls: 8"
        assert lines[5] == "Sum of bin values: 8"
        assert lines[6] == "Nice work! Both of them are equal"

    def test_mismatch_is_reported(self):
        lines = galton_board.format_report(make_result([1, 1], trials=3))
        assert lines[-1].startswith("Mismatch!")

    def test_compare_adds_expected_column(self):
        lines = galton_board.format_report(make_result([2, 2]), compare=True)
        assert lines[0] == "0\t2\t2.0"
        assert lines[1] == "1\t2\t2.0"


class TestMain:
    """End-to-end runs of main()."""

    def test_successful_run(self, capsys):
        assert galton_board.main(["-numThreads", "500", "-numBins", "6"]) == 0
        out = capsys.readouterr().out.splitlines()
        assert len([line for line in out if "\t" in line]) == 6
        assert "Number of requested balls: 500" in out
        assert "Sum of bin values: 500" in out
        assert out[-1] == "Nice work! Both of them are equal"

    def test_writes_csv(self, tmp_path, capsys):
        path = tmp_path / "bins.csv"
        code = galton_board.main(["--trials", "200", "--bins", "4", "--csv", str(path)])
        assert code == 0
        with open(path, newline="") as f:
            rows = list(csv.DictReader(f))
        assert [int(r["bin"]) for r in rows] == [0, 1, 2, 3]
        assert sum(int(r["count"]) for r in rows) == 200
        assert float(rows[1]["expected"]) == pytest.approx(75.0)
        assert f"Wrote {path}" in capsys.readouterr().out

    def test_timeout_aborts(self, monkeypatch, capsys):
        def timed_out(trials, bins, time_budget):
            raise SimulationTimeout(time_budget)

        monkeypatch.setattr(galton_board, "simulate", timed_out)
        assert galton_board.main(["-numThreads", "10", "-numBins", "4", "-awaitTime", "5"]) == 1
        out = capsys.readouterr().out
        assert "did not finish within 5 seconds" in out
        assert "--awaitTime" in out
        assert "Sum of bin values" not in out

    def test_cancellation_aborts(self, monkeypatch, capsys):
        def cancelled(trials, bins, time_budget):
            raise SimulationCancelled(time_budget)

        monkeypatch.setattr(galton_board, "simulate", cancelled)
        assert galton_board.main(["-numThreads", "10", "-numBins", "4"]) == 130
        assert "interrupted" in capsys.readouterr().out

    def test_plot_draws_bars_and_expectation(self, monkeypatch, capsys):
        matplotlib.use("Agg")
        import matplotlib.pyplot as plt

        shown = []
        monkeypatch.setattr(plt, "show", lambda: shown.append(True))
        plt.figure()
        try:
            assert galton_board.main(["--trials", "300", "--bins", "6", "--plot"]) == 0
            ax = plt.gca()
            assert len(ax.patches) == 6
            assert sum(p.get_height() for p in ax.patches) == 300
            assert len(ax.lines) == 1
            assert ax.get_xlabel() == "Bin"
            assert shown == [True]
        finally:
            plt.close("all")
        assert "Sum of bin values: 300" in capsys.readouterr().out
