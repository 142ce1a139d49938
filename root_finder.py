"""
Core numerical methods and helpers for the Root Finder Calculator.

This module centralizes:
    - Parsing user-provided expressions into safe callables (and, for
      Newton-Raphson, their symbolic derivative).
    - The four root-finding procedures: Bisection, False Position,
      Newton-Raphson and Secant.
    - A thin façade (`run_method`) that normalizes inputs/outputs so both the
      CLI and Flask web layers can consume the same API.

Each solver returns an immutable `IterationTrace` with:
    method: str
    records: Tuple[record, ...]   # one frozen record per iteration
    root: Optional[float]         # None means "Not found"
    root_value: Optional[float]
    converged: bool
    round_off: int                # digits used when rendering rows
    stopping_rule: str
    message: str
    derivative: Optional[str]     # Newton-Raphson only
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, ClassVar, Dict, List, Mapping, Optional, Tuple, Union

import sympy as sp

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------- #
# Errors
# --------------------------------------------------------------------------- #


class RootFinderError(ValueError):
    """Base class for every failure surfaced by a solve."""


class ExpressionParseError(RootFinderError):
    """Raised when a user-supplied expression cannot be parsed."""


class EvaluationError(RootFinderError):
    """Raised when an expression has no finite real value at a point."""


class DifferentiationError(RootFinderError):
    """Raised when sympy cannot produce a usable derivative."""


class InputValidationError(RootFinderError):
    """Raised for missing, non-numeric or out-of-range caller input."""


class BracketError(InputValidationError):
    """Raised when a bracketing interval does not enclose a sign change."""


# --------------------------------------------------------------------------- #
# Expression parsing helpers
# --------------------------------------------------------------------------- #

X_SYMBOL = sp.symbols("x")


def _sympy_to_float(value, x: float) -> float:
    """Convert sympy/complex numbers into a finite float."""
    if isinstance(value, complex):
        if abs(value.imag) > 1e-9:
            raise EvaluationError(f"Expression is not real at x={x}.")
        value = value.real
    try:
        number = float(value)
    except TypeError as exc:
        raise EvaluationError(
            f"Unable to convert expression result at x={x} to a number."
        ) from exc
    if not math.isfinite(number):
        raise EvaluationError(f"Expression is not finite at x={x}.")
    return number


def _parse(expr: str) -> sp.Expr:
    if not expr or not expr.strip():
        raise ExpressionParseError("Function expression cannot be empty.")
    try:
        sympy_expr = sp.sympify(expr, locals={"x": X_SYMBOL})
    except (sp.SympifyError, SyntaxError, TypeError) as exc:
        raise ExpressionParseError(f"Invalid function expression: {expr}") from exc
    if not isinstance(sympy_expr, sp.Expr):
        raise ExpressionParseError(f"Not a function of x: {expr}")
    extra = sympy_expr.free_symbols - {X_SYMBOL}
    if extra:
        names = ", ".join(sorted(str(symbol) for symbol in extra))
        raise ExpressionParseError(f"Only the variable x is allowed (found {names}).")
    return sympy_expr


def _compile(sympy_expr: sp.Expr) -> Callable[[float], float]:
    func = sp.lambdify(X_SYMBOL, sympy_expr, "math")

    def wrapper(value: float) -> float:
        try:
            evaluated = func(value)
        except (ArithmeticError, ValueError, TypeError) as exc:
            raise EvaluationError(
                f"Error evaluating function at x={value}: {exc}"
            ) from exc
        return _sympy_to_float(evaluated, value)

    return wrapper


def build_function(expr: str) -> Callable[[float], float]:
    """
    Convert an input string into a callable f(x).

    Users can enter expressions such as:
        "x**3 - x - 2", "x^2 - 4", "sin(x) - x/2", etc.
    """
    return _compile(_parse(expr))


@dataclass(frozen=True)
class Derivative:
    """A symbolic derivative: its printable form and a float callable."""

    text: str
    func: Callable[[float], float]

    def __call__(self, value: float) -> float:
        return self.func(value)


def build_derivative(expr: str) -> Derivative:
    """Automatically differentiate the expression for Newton-Raphson."""
    sympy_expr = _parse(expr)
    try:
        derivative = sp.diff(sympy_expr, X_SYMBOL)
    except (ValueError, TypeError, NotImplementedError) as exc:
        raise DifferentiationError(f"Cannot differentiate {expr}: {exc}") from exc
    if derivative.has(sp.Derivative):
        raise DifferentiationError(f"No closed-form derivative for {expr}.")
    return Derivative(text=str(derivative), func=_compile(derivative))


# --------------------------------------------------------------------------- #
# Input helpers
# --------------------------------------------------------------------------- #

DEFAULT_ROUND_OFF = 4


def parse_float(label: str, raw: Optional[str]) -> float:
    """Turn a caller-supplied text field into a float."""
    if raw is None or str(raw).strip() == "":
        raise InputValidationError(f"{label} is required.")
    try:
        number = float(raw)
    except (TypeError, ValueError) as exc:
        raise InputValidationError(f"{label} must be numeric.") from exc
    if not math.isfinite(number):
        raise InputValidationError(f"{label} must be a finite number.")
    return number


def parse_round_off(raw: Optional[str], default: int = DEFAULT_ROUND_OFF) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        digits = int(raw)
    except (TypeError, ValueError) as exc:
        raise InputValidationError("Round off must be a whole number.") from exc
    _check_round_off(digits)
    return digits


def _check_round_off(round_off: int) -> None:
    if isinstance(round_off, bool) or not isinstance(round_off, int) or round_off < 1:
        raise InputValidationError("Round off must be an integer of at least 1.")


def _check_max_iter(max_iter: int) -> None:
    if max_iter < 1:
        raise InputValidationError("Maximum iterations must be at least 1.")


def _check_tolerance(tolerance: float) -> None:
    if not tolerance > 0 or not math.isfinite(tolerance):
        raise InputValidationError("Tolerance must be a positive number.")


def _fixed(value: float, round_off: int) -> str:
    return f"{value:.{round_off}f}"


def _opposite_signs(a: float, b: float) -> bool:
    # a * b underflows to 0.0 when both values are tiny.
    return (a < 0 < b) or (b < 0 < a)


def relative_error(new: float, old: float) -> float:
    """Percent change |new - old| / |new| * 100."""
    if new == old:
        return 0.0
    if new == 0:
        return math.inf
    return abs((new - old) / new) * 100


# --------------------------------------------------------------------------- #
# Iteration records
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class BisectionRecord:
    COLUMNS: ClassVar[Tuple[str, ...]] = (
        "iteration", "xl", "xr", "xm", "f(xl)", "f(xm)", "f(xr)",
    )

    iteration: int
    xl: float
    xr: float
    xm: float
    yl: float
    ym: float
    yr: float

    def as_row(self, round_off: int) -> Dict[str, Union[int, str]]:
        values = (self.xl, self.xr, self.xm, self.yl, self.ym, self.yr)
        row: Dict[str, Union[int, str]] = {"iteration": self.iteration}
        for column, value in zip(self.COLUMNS[1:], values):
            row[column] = _fixed(value, round_off)
        return row


@dataclass(frozen=True)
class FalsePositionRecord(BisectionRecord):
    """Same fields as bisection; `xm` is the chord's x-intercept."""


@dataclass(frozen=True)
class NewtonRecord:
    """
    One displayed Newton-Raphson row.

    `fx` and `fpx` are the values at the estimate that produced `x`, and
    `relative_error` is the error of the step before that, so every row
    lags the error by one step.
    """

    COLUMNS: ClassVar[Tuple[str, ...]] = (
        "iteration", "x", "f(x)", "f'(x)", "relative error (%)",
    )

    iteration: int
    x: float
    fx: float
    fpx: float
    relative_error: Optional[float]

    def as_row(self, round_off: int) -> Dict[str, Union[int, str]]:
        return {
            "iteration": self.iteration,
            "x": _fixed(self.x, round_off),
            "f(x)": _fixed(self.fx, round_off),
            "f'(x)": _fixed(self.fpx, round_off),
            "relative error (%)": (
                "" if self.relative_error is None
                else _fixed(self.relative_error, round_off)
            ),
        }


SECANT_ERROR_DIGITS = 4


@dataclass(frozen=True)
class SecantRecord:
    COLUMNS: ClassVar[Tuple[str, ...]] = (
        "iteration", "x0", "x1", "x2", "f(x0)", "f(x1)", "relative error",
    )

    iteration: int
    x0: float
    x1: float
    x2: float
    fx0: float
    fx1: float
    relative_error: Optional[float]

    def as_row(self, round_off: int) -> Dict[str, Union[int, str]]:
        return {
            "iteration": self.iteration,
            "x0": _fixed(self.x0, round_off),
            "x1": _fixed(self.x1, round_off),
            "x2": _fixed(self.x2, round_off),
            "f(x0)": _fixed(self.fx0, round_off),
            "f(x1)": _fixed(self.fx1, round_off),
            "relative error": (
                "" if self.relative_error is None
                else _fixed(self.relative_error, SECANT_ERROR_DIGITS) + "%"
            ),
        }


IterationRecord = Union[BisectionRecord, FalsePositionRecord, NewtonRecord, SecantRecord]


# --------------------------------------------------------------------------- #
# Result container
# --------------------------------------------------------------------------- #

NOT_FOUND = "Not found"


@dataclass(frozen=True)
class IterationTrace:
    """
    Everything one solve produced, in computation order.

    `records` is empty when a bracket endpoint is already an exact root;
    the trace is then `converged` with that endpoint as `root`.
    """

    method: str
    records: Tuple[IterationRecord, ...]
    root: Optional[float]
    root_value: Optional[float]
    converged: bool
    round_off: int
    stopping_rule: str
    message: str
    derivative: Optional[str] = None

    @property
    def columns(self) -> Tuple[str, ...]:
        return _RECORD_TYPES[self.method].COLUMNS

    @property
    def iteration_count(self) -> int:
        return len(self.records)

    @property
    def found(self) -> bool:
        return self.root is not None

    def rows(self) -> List[Dict[str, Union[int, str]]]:
        return [record.as_row(self.round_off) for record in self.records]

    @property
    def root_display(self) -> str:
        return NOT_FOUND if self.root is None else _fixed(self.root, self.round_off)

    @property
    def root_value_display(self) -> str:
        if self.root_value is None:
            return NOT_FOUND
        return _fixed(self.root_value, self.round_off)


def _finalize(
    method: str,
    records: List[IterationRecord],
    *,
    converged: bool,
    root: Optional[float],
    root_value: Optional[float],
    round_off: int,
    stopping_rule: str,
    message: str,
    derivative: Optional[str] = None,
) -> IterationTrace:
    if converged:
        logger.info("%s: %s Root %r.", method, message, root)
    else:
        logger.warning("%s: %s", method, message)
    return IterationTrace(
        method=method,
        records=tuple(records),
        root=root,
        root_value=root_value,
        converged=converged,
        round_off=round_off,
        stopping_rule=stopping_rule,
        message=message,
        derivative=derivative,
    )


# --------------------------------------------------------------------------- #
# Stopping policies
# --------------------------------------------------------------------------- #


@dataclass(frozen=True)
class BracketWidthConvergence:
    """Stop once the bracket is narrower than the tolerance."""

    tolerance: float
    name: ClassVar[str] = "bracket-width"

    def satisfied(self, xl: float, xr: float) -> bool:
        return abs(xr - xl) < self.tolerance


@dataclass(frozen=True)
class StagnationConvergence:
    """Stop once f at consecutive estimates changes by less than the tolerance."""

    tolerance: float
    name: ClassVar[str] = "stagnation"

    def satisfied(self, ym: float, ym_previous: float) -> bool:
        return abs(ym - ym_previous) < self.tolerance


@dataclass(frozen=True)
class ExactConvergence:
    """Stop only when an iteration leaves the estimate unchanged."""

    name: ClassVar[str] = "exact"

    def satisfied(self, error: float) -> bool:
        return error <= 0


@dataclass(frozen=True)
class ToleranceConvergence:
    """Stop when the relative error (percent) drops below the tolerance."""

    tolerance: float
    name: ClassVar[str] = "tolerance"

    def satisfied(self, error: float) -> bool:
        return error < self.tolerance


OpenConvergence = Union[ExactConvergence, ToleranceConvergence]


# --------------------------------------------------------------------------- #
# Numerical methods
# --------------------------------------------------------------------------- #

MAX_ITERATIONS = {
    "bisection": 100,
    "false_position": 100,
    "newton_raphson": 100,
    "secant": 1000,
}


def _check_bracket(
    method: str,
    f: Callable[[float], float],
    xl: float,
    xr: float,
    round_off: int,
    stopping_rule: str,
) -> Tuple[float, float, Optional[IterationTrace]]:
    """Evaluate the endpoints; return a finished trace if one is already a root."""
    if not xl < xr:
        raise InputValidationError("xl must be smaller than xr.")
    yl, yr = f(xl), f(xr)
    if yl != 0 and yr != 0 and not _opposite_signs(yl, yr):
        raise BracketError(
            f"f(xl) and f(xr) must have opposite signs for {METHOD_LABELS[method]}."
        )
    for x, y, label in ((xl, yl, "xl"), (xr, yr, "xr")):
        if y == 0:
            trace = _finalize(
                method,
                [],
                converged=True,
                root=x,
                root_value=y,
                round_off=round_off,
                stopping_rule=stopping_rule,
                message=f"Endpoint {label} is an exact root.",
            )
            return yl, yr, trace
    return yl, yr, None


def bisection(
    f: Callable[[float], float],
    xl: float,
    xr: float,
    tolerance: float,
    max_iter: int = MAX_ITERATIONS["bisection"],
    round_off: int = DEFAULT_ROUND_OFF,
) -> IterationTrace:
    _check_tolerance(tolerance)
    _check_max_iter(max_iter)
    _check_round_off(round_off)
    rule = BracketWidthConvergence(tolerance)
    yl, yr, early = _check_bracket("bisection", f, xl, xr, round_off, rule.name)
    if early is not None:
        return early

    records: List[IterationRecord] = []
    for i in range(1, max_iter + 1):
        xm = (xl + xr) / 2
        ym = f(xm)
        records.append(BisectionRecord(i, xl, xr, xm, yl, ym, yr))
        logger.debug("bisection %d: xl=%r xr=%r xm=%r f(xm)=%r", i, xl, xr, xm, ym)
        if ym == 0:
            return _finalize(
                "bisection",
                records,
                converged=True,
                root=xm,
                root_value=ym,
                round_off=round_off,
                stopping_rule=rule.name,
                message=f"Exact root found in {i} iterations.",
            )
        if _opposite_signs(yl, ym):
            xr, yr = xm, ym
        else:
            xl, yl = xm, ym
        if rule.satisfied(xl, xr):
            return _finalize(
                "bisection",
                records,
                converged=True,
                root=xm,
                root_value=ym,
                round_off=round_off,
                stopping_rule=rule.name,
                message=f"Converged in {i} iterations.",
            )

    return _finalize(
        "bisection",
        records,
        converged=False,
        root=None,
        root_value=None,
        round_off=round_off,
        stopping_rule=rule.name,
        message="Maximum iterations reached without convergence.",
    )


def false_position(
    f: Callable[[float], float],
    xl: float,
    xr: float,
    tolerance: float,
    max_iter: int = MAX_ITERATIONS["false_position"],
    round_off: int = DEFAULT_ROUND_OFF,
) -> IterationTrace:
    """
    Regula Falsi with a stagnation stopping test.

    Unlike the textbook criterion, iteration stops when f at two
    consecutive estimates differs by less than `tolerance`. A bracket with
    one endpoint stuck far from the root can therefore stop early while
    `xr - xl` is still wide.
    """
    _check_tolerance(tolerance)
    _check_max_iter(max_iter)
    _check_round_off(round_off)
    rule = StagnationConvergence(tolerance)
    yl, yr, early = _check_bracket("false_position", f, xl, xr, round_off, rule.name)
    if early is not None:
        return early

    records: List[IterationRecord] = []
    ym_previous: Optional[float] = None
    for i in range(1, max_iter + 1):
        xm = xl + (xr - xl) * (yl / (yl - yr))
        ym = f(xm)
        records.append(FalsePositionRecord(i, xl, xr, xm, yl, ym, yr))
        logger.debug("false_position %d: xl=%r xr=%r xm=%r f(xm)=%r", i, xl, xr, xm, ym)

        stagnated = ym_previous is not None and rule.satisfied(ym, ym_previous)
        if stagnated or ym == 0:
            return _finalize(
                "false_position",
                records,
                converged=True,
                root=xm,
                root_value=ym,
                round_off=round_off,
                stopping_rule=rule.name,
                message=f"Converged in {i} iterations.",
            )
        if _opposite_signs(ym, yl):
            xr, yr = xm, ym
        else:
            xl, yl = xm, ym
        ym_previous = ym

    return _finalize(
        "false_position",
        records,
        converged=False,
        root=None,
        root_value=None,
        round_off=round_off,
        stopping_rule=rule.name,
        message="Maximum iterations reached without convergence.",
    )


def _drop_seed_row(records: List[NewtonRecord]) -> List[NewtonRecord]:
    """
    Remove the seed row and renumber what remains from 1.

    The seed row only repeats x0 with f(x0) and f'(x0), which the first
    real step already shows, so it is never part of the displayed trace.
    """
    return [
        NewtonRecord(index, r.x, r.fx, r.fpx, r.relative_error)
        for index, r in enumerate(records[1:], start=1)
    ]


def newton_raphson(
    f: Callable[[float], float],
    df: Callable[[float], float],
    x0: float,
    max_iter: int = MAX_ITERATIONS["newton_raphson"],
    round_off: int = DEFAULT_ROUND_OFF,
    convergence: OpenConvergence = ExactConvergence(),
) -> IterationTrace:
    _check_max_iter(max_iter)
    _check_round_off(round_off)
    derivative = df.text if isinstance(df, Derivative) else None

    raw: List[NewtonRecord] = [NewtonRecord(1, x0, f(x0), df(x0), None)]
    xn = x0
    previous_error: Optional[float] = None
    converged = False
    n = 1
    while True:
        fx = f(xn)
        fpx = df(xn)
        if fpx == 0:
            raise EvaluationError(f"Derivative is zero at x={xn}; cannot take a step.")
        x_next = xn - fx / fpx
        if not math.isfinite(x_next):
            raise EvaluationError(f"Newton step from x={xn} is not finite.")
        error = relative_error(x_next, xn)
        raw.append(NewtonRecord(n + 1, x_next, fx, fpx, previous_error))
        logger.debug("newton_raphson %d: x=%r f=%r f'=%r err=%r", n, x_next, fx, fpx, error)

        if convergence.satisfied(error):
            converged = True
            break
        if n >= max_iter:
            break
        previous_error = error
        xn = x_next
        n += 1

    records = _drop_seed_row(raw)
    root = records[-1].x
    message = (
        f"Converged in {len(records)} iterations."
        if converged
        else "Maximum iterations reached; returning the last estimate."
    )
    return _finalize(
        "newton_raphson",
        records,
        converged=converged,
        root=root,
        root_value=f(root),
        round_off=round_off,
        stopping_rule=convergence.name,
        message=message,
        derivative=derivative,
    )


def secant(
    f: Callable[[float], float],
    xa: float,
    xb: float,
    max_iter: int = MAX_ITERATIONS["secant"],
    round_off: int = DEFAULT_ROUND_OFF,
    convergence: OpenConvergence = ExactConvergence(),
) -> IterationTrace:
    _check_max_iter(max_iter)
    _check_round_off(round_off)

    records: List[IterationRecord] = []
    x0, x1 = xa, xb
    converged = False
    for i in range(1, max_iter + 1):
        fx0, fx1 = f(x0), f(x1)
        error = relative_error(x1, x0) if i > 1 else None
        if fx1 == 0 or (x1 == x0 and i > 1):
            # Already stationary; the chord formula would be 0/0.
            x2 = x1
        elif fx1 == fx0:
            raise EvaluationError(
                f"Secant slope vanished between x={x0} and x={x1}."
            )
        else:
            x2 = x1 - fx1 * (x1 - x0) / (fx1 - fx0)
            if not math.isfinite(x2):
                raise EvaluationError(f"Secant step from x={x1} is not finite.")
        records.append(SecantRecord(i, x0, x1, x2, fx0, fx1, error))
        logger.debug("secant %d: x0=%r x1=%r x2=%r err=%r", i, x0, x1, x2, error)

        if error is not None and convergence.satisfied(error):
            converged = True
            break
        x0, x1 = x1, x2

    message = (
        f"Converged in {len(records)} iterations."
        if converged
        else "Maximum iterations reached; returning the last estimate."
    )
    return _finalize(
        "secant",
        records,
        converged=converged,
        root=x2,
        root_value=f(x2),
        round_off=round_off,
        stopping_rule=convergence.name,
        message=message,
    )


_RECORD_TYPES = {
    "bisection": BisectionRecord,
    "false_position": FalsePositionRecord,
    "newton_raphson": NewtonRecord,
    "secant": SecantRecord,
}


# --------------------------------------------------------------------------- #
# Public runner
# --------------------------------------------------------------------------- #

MethodParams = Mapping[str, float]

METHOD_FIELDS = {
    "bisection": ("xl", "xr", "tolerance"),
    "false_position": ("xl", "xr", "tolerance"),
    "newton_raphson": ("x0",),
    "secant": ("xa", "xb"),
}


def run_method(
    method: str,
    *,
    function_expr: str,
    params: MethodParams,
    round_off: int = DEFAULT_ROUND_OFF,
) -> IterationTrace:
    """
    Dispatch helper that evaluates the chosen numerical method.

    Parameters
    ----------
    method : key identifying the algorithm (see `METHOD_LABELS`).
    function_expr : f(x) expression supplied by the user.
    params : numeric values needed by the specific method.
    round_off : decimal digits used when the trace is rendered.
    """

    method = method.lower().replace("-", "_")
    if method not in METHOD_FIELDS:
        raise ValueError(f"Unknown method: {method}")
    missing = [name for name in METHOD_FIELDS[method] if params.get(name) is None]
    if missing:
        raise InputValidationError(f"Missing required value(s): {', '.join(missing)}.")

    f = build_function(function_expr)
    logger.info("Solving %s with %s.", function_expr, METHOD_LABELS[method])

    if method == "bisection":
        return bisection(
            f,
            xl=params["xl"],
            xr=params["xr"],
            tolerance=params["tolerance"],
            round_off=round_off,
        )
    if method == "false_position":
        return false_position(
            f,
            xl=params["xl"],
            xr=params["xr"],
            tolerance=params["tolerance"],
            round_off=round_off,
        )
    if method == "newton_raphson":
        df = build_derivative(function_expr)
        return newton_raphson(f, df, x0=params["x0"], round_off=round_off)
    return secant(f, xa=params["xa"], xb=params["xb"], round_off=round_off)


# Mapping useful for UI layers
METHOD_LABELS = {
    "bisection": "Bisection Method",
    "false_position": "False Position (Regula Falsi)",
    "newton_raphson": "Newton–Raphson Method",
    "secant": "Secant Method",
}
