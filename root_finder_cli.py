"""
Command-Line Interface for the Root Finder Calculator.

The CLI walks users through:
    1. Choosing one of the four supported root-finding methods.
    2. Entering f(x), the method's starting values and a round-off precision.
    3. Viewing the iteration table plus the final estimated root.

The same numerical core is shared with the Flask web interface.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, List

from root_finder import (
    DEFAULT_ROUND_OFF,
    METHOD_LABELS,
    IterationTrace,
    RootFinderError,
    parse_float,
    parse_round_off,
    run_method,
)

LOG_LEVEL_ENV = "ROOT_FINDER_LOG_LEVEL"

FIELD_PROMPTS = {
    "bisection": (
        ("xl", "Lower bound (xl)"),
        ("xr", "Upper bound (xr)"),
        ("tolerance", "Precision (e.g., 0.001)"),
    ),
    "newton_raphson": (("x0", "Initial value (x0)"),),
    "secant": (
        ("xa", "First initial value (xa)"),
        ("xb", "Second initial value (xb)"),
    ),
}
FIELD_PROMPTS["false_position"] = FIELD_PROMPTS["bisection"]


def configure_logging() -> None:
    level = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_iterations(trace: IterationTrace) -> None:
    if not trace.records:
        print("No iteration details to display.")
        return
    columns = list(trace.columns)
    rows: List[List[str]] = [
        [str(row[col]) for col in columns] for row in trace.rows()
    ]

    widths = [
        max(len(col), *(len(row[idx]) for row in rows))
        for idx, col in enumerate(columns)
    ]
    rule = "-" * (sum(widths) + 3 * (len(columns) - 1))

    def print_row(values: List[str]) -> None:
        line = " | ".join(value.ljust(widths[idx]) for idx, value in enumerate(values))
        print(line)

    print("\nIteration Table")
    print(rule)
    print_row(columns)
    print(rule)
    for row in rows:
        print_row(row)
    print(rule)


def _prompt_float(label: str) -> float:
    while True:
        try:
            return parse_float(label, input(f"Enter {label[0].lower()}{label[1:]}: "))
        except RootFinderError as exc:
            print(f"{exc} Please try again.")


def _prompt_round_off() -> int:
    while True:
        raw = input(f"Enter round off digits [default: {DEFAULT_ROUND_OFF}]: ")
        try:
            return parse_round_off(raw)
        except RootFinderError as exc:
            print(f"{exc} Please try again.")


def _prompt_function(prompt: str) -> str:
    while True:
        expr = input(prompt).strip()
        if expr:
            return expr
        print("Expression cannot be empty. Please try again.")


def _collect_method_params(method_key: str) -> Dict[str, float]:
    return {name: _prompt_float(label) for name, label in FIELD_PROMPTS[method_key]}


def _display_summary(trace: IterationTrace) -> None:
    print("\nSummary")
    print("-------")
    if trace.derivative is not None:
        print(f"Derivative    : {trace.derivative}")
    print(f"Status        : {'Converged' if trace.converged else 'Did not converge'}")
    print(f"Estimated root: {trace.root_display}")
    print(f"f(root)       : {trace.root_value_display}")
    print(f"Iterations    : {trace.iteration_count}")
    print(f"Message       : {trace.message}")


def main() -> None:
    configure_logging()
    print("=" * 70)
    print("Root Finder Calculator - CLI")
    print("Enter equations using the variable x. Example: x^3 - x - 2 or sin(x)")
    print("=" * 70)

    method_keys = list(METHOD_LABELS.keys())

    while True:
        print("\nAvailable Methods:")
        for idx, key in enumerate(method_keys, start=1):
            print(f"  {idx}. {METHOD_LABELS[key]}")
        print("  0. Exit")

        choice_raw = input("\nSelect a method by number: ").strip()
        if choice_raw == "0":
            print("Goodbye!")
            break
        try:
            choice = int(choice_raw)
            if choice < 1:
                raise IndexError(choice)
            method_key = method_keys[choice - 1]
        except (ValueError, IndexError):
            print("Invalid selection. Please choose a valid method number.")
            continue

        function_expr = _prompt_function("Enter f(x): ")
        params = _collect_method_params(method_key)
        round_off = _prompt_round_off()

        try:
            trace = run_method(
                method_key,
                function_expr=function_expr,
                params=params,
                round_off=round_off,
            )
        except RootFinderError as exc:
            print(f"Input error: {exc}")
            continue

        _print_iterations(trace)
        _display_summary(trace)

        again = input("\nWould you like to solve another equation? (y/n): ").strip()
        if again.lower() not in {"y", "yes"}:
            print("Thanks for using the Root Finder Calculator!")
            break


if __name__ == "__main__":
    main()
