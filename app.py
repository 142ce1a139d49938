"""
Flask web GUI for the Root Finder Calculator.

Users can:
    - Pick one of the four root-finding methods.
    - Enter f(x), the method's starting values and a round-off precision.
    - Review the iteration table, the derivative (Newton-Raphson) and the root.
"""

from __future__ import annotations

from typing import Dict, Optional

from flask import Flask, render_template, request

from root_finder import (
    DEFAULT_ROUND_OFF,
    METHOD_FIELDS,
    METHOD_LABELS,
    IterationTrace,
    RootFinderError,
    parse_float,
    parse_round_off,
    run_method,
)

app = Flask(__name__)
app.config.from_mapping(DEFAULT_ROUND_OFF=DEFAULT_ROUND_OFF)
app.config.from_prefixed_env("ROOT_FINDER")

DEFAULTS = {
    "function_expr": "x^3 - x - 2",
    "xl": "1",
    "xr": "2",
    "tolerance": "0.001",
    "x0": "1",
    "xa": "0",
    "xb": "2",
}

FIELD_LABELS = {
    "xl": "XL",
    "xr": "XR",
    "tolerance": "Precision",
    "x0": "Xo",
    "xa": "XA",
    "xb": "XB",
}


def _collect_params(method: str, form) -> Dict[str, float]:
    if method not in METHOD_FIELDS:
        raise ValueError(f"Unsupported method: {method}")
    return {
        name: parse_float(FIELD_LABELS[name], form.get(name))
        for name in METHOD_FIELDS[method]
    }


@app.route("/", methods=["GET", "POST"])
def index():
    trace: Optional[IterationTrace] = None
    error_message: Optional[str] = None
    selected_method = request.form.get("method", "bisection")
    function_expr = request.form.get("function_expr", DEFAULTS["function_expr"])
    round_off_value = request.form.get("round_off", str(app.config["DEFAULT_ROUND_OFF"]))

    if request.method == "POST":
        function_expr = function_expr.strip()
        if not function_expr:
            error_message = "Please provide f(x)."
        else:
            try:
                params = _collect_params(selected_method, request.form)
                round_off = parse_round_off(
                    round_off_value, default=int(app.config["DEFAULT_ROUND_OFF"])
                )
                trace = run_method(
                    selected_method,
                    function_expr=function_expr,
                    params=params,
                    round_off=round_off,
                )
            except (RootFinderError, ValueError) as exc:
                app.logger.info("Rejected %s request: %s", selected_method, exc)
                error_message = str(exc)

    context = {
        "methods": METHOD_LABELS,
        "field_labels": FIELD_LABELS,
        "selected_method": selected_method,
        "function_expr": function_expr,
        "round_off": round_off_value,
        "form": request.form,
        "defaults": DEFAULTS,
        "result": trace,
        "error_message": error_message,
    }
    return render_template("index.html", **context)


if __name__ == "__main__":
    app.run(debug=True)
