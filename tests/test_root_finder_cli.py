import builtins

import pytest

import root_finder_cli


@pytest.fixture
def answers(monkeypatch):
    def feed(*values):
        queue = iter(values)
        monkeypatch.setattr(builtins, "input", lambda prompt="": next(queue))

    return feed


def test_cli_solves_bisection(answers, capsys):
    answers("1", "x^3 - x - 2", "1", "2", "0.001", "", "n")
    root_finder_cli.main()
    out = capsys.readouterr().out
    assert "Iteration Table" in out
    assert "Status        : Converged" in out
    assert "Estimated root: 1.5205" in out
    assert "Iterations    : 10" in out


def test_cli_shows_newton_derivative(answers, capsys):
    answers("3", "x^2 - 2", "1", "6", "n")
    root_finder_cli.main()
    out = capsys.readouterr().out
    assert "Derivative    : 2*x" in out
    assert "Estimated root: 1.414214" in out


def test_cli_reports_input_errors_and_continues(answers, capsys):
    answers("1", "x^2 + 1", "-1", "1", "0.001", "", "0")
    root_finder_cli.main()
    out = capsys.readouterr().out
    assert "Input error: f(xl) and f(xr) must have opposite signs" in out
    assert "Goodbye!" in out


def test_cli_reprompts_for_bad_numbers(answers, capsys):
    answers("9", "4", "x^2 - 4", "abc", "0", "2", "0", "", "n")
    root_finder_cli.main()
    out = capsys.readouterr().out
    assert "Invalid selection" in out
    assert "must be numeric" in out
    assert "Round off must be an integer of at least 1." in out
    assert "Estimated root: 2.0000" in out
