# galton_board.py
# Command-line front end for the concurrent Galton board simulation.
#
# Usage:
#   python galton_board.py --numThreads 10000 --numBins 10
#   python galton_board.py --numThreads 10000 --numBins 10 --awaitTime 5 --compare
#   python galton_board.py --help      # see knobs
#
# Outputs:
#   - one "bin<TAB>count" line per bin, followed by the conservation check
#   - optionally a bin,count CSV file and a histogram window

import argparse
import csv
import logging
import sys
from typing import List, Optional, Tuple

from galton_sim import (
    DEFAULT_TIME_BUDGET,
    ConfigurationError,
    SimulationCancelled,
    SimulationConfig,
    SimulationResult,
    SimulationTimeout,
    expected_counts,
    simulate,
)

LOG_FORMAT = "%(levelname)s: %(message)s"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="galton-board",
        description="Drop balls through a Galton board on a pool of worker threads.",
    )
    ap.add_argument(
        "-numThreads", "--numThreads", "--trials",
        dest="trials", type=int, required=True,
        help="Number of balls to drop (must be >= 1)",
    )
    ap.add_argument(
        "-numBins", "--numBins", "--bins",
        dest="bins", type=int, required=True,
        help="Number of bins (must be even and >= 2)",
    )
    ap.add_argument(
        "-awaitTime", "--awaitTime", "--await-time",
        dest="await_time", type=float, default=DEFAULT_TIME_BUDGET,
        help="Seconds to wait for every ball to land (default 30)",
    )
    ap.add_argument("--csv", dest="csv_path", default=None, help="Also write bin,count rows here")
    ap.add_argument("--compare", action="store_true", help="Show the binomial expectation per bin")
    ap.add_argument("--plot", action="store_true", help="Show a histogram of the counts")
    ap.add_argument("--verbose", "-v", action="store_true")
    return ap


def parse_config(
    ap: argparse.ArgumentParser, argv: List[str]
) -> Tuple[SimulationConfig, argparse.Namespace]:
    args = ap.parse_args(argv)
    if args.await_time < 1:
        ap.error(f"awaitTime must be >= 1 second, got {args.await_time:g}")
    try:
        config = SimulationConfig(args.trials, args.bins, args.await_time).validate()
    except ConfigurationError as exc:
        ap.error(str(exc))
    return config, args


# ---------- Report ----------


def format_report(result: SimulationResult, compare: bool = False) -> List[str]:
    lines = []
    expected = expected_counts(result.trials, result.bins) if compare else None
    for index, count in result.counts:
        if expected is None:
            lines.append(f"{index}\t{count}")
        else:
            lines.append(f"{index}\t{count}\t{expected[index]:.1f}")
    lines.append(f"Number of requested balls: {result.trials}")
    lines.append(f"Sum of bin values: {result.total}")
    if result.is_conserved:
        lines.append("Nice work! Both of them are equal")
    else:
        lines.append("Mismatch! The bins do not add up to the number of balls")
    return lines


def write_csv(path: str, result: SimulationResult) -> None:
    expected = expected_counts(result.trials, result.bins)
    with open(path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=["bin", "count", "expected"])
        w.writeheader()
        for index, count in result.counts:
            w.writerow({"bin": index, "count": count, "expected": round(expected[index], 3)})


def plot_counts(result: SimulationResult) -> None:
    import matplotlib.pyplot as plt

    bins = range(result.bins)
    plt.bar(bins, result.values(), color="skyblue", alpha=0.7, label="observed")
    plt.plot(bins, expected_counts(result.trials, result.bins), "k.--", label="binomial")
    plt.xlabel("Bin")
    plt.ylabel("Number of balls")
    plt.title(f"Galton board: {result.trials} balls, {result.bins} bins")
    plt.legend()
    plt.show()


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    ap = build_parser()
    if not argv:
        ap.print_usage()
        return 2
    config, args = parse_config(ap, argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING, format=LOG_FORMAT
    )

    try:
        result = simulate(config.trials, config.bins, config.time_budget)
    except SimulationTimeout as exc:
        print(
            f"Mission aborted: the simulation did not finish within {exc.time_budget:g} seconds!\n"
            "You can change the budget with '--awaitTime <seconds>'."
        )
        return 1
    except SimulationCancelled:
        print("Mission aborted: the simulation was interrupted.")
        return 130

    for line in format_report(result, compare=args.compare):
        print(line)

    if args.csv_path:
        write_csv(args.csv_path, result)
        print(f"Wrote {args.csv_path}")
    if args.plot:
        plot_counts(result)

    return 0 if result.is_conserved else 1


if __name__ == "__main__":
    sys.exit(main())
