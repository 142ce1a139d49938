import pytest

from app import app


@pytest.fixture
def client():
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


def test_index_renders_form(client):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Root Finder Calculator" in response.data
    assert b"x^3 - x - 2" in response.data


def test_post_bisection(client):
    response = client.post(
        "/",
        data={
            "method": "bisection",
            "function_expr": "x^3 - x - 2",
            "xl": "1",
            "xr": "2",
            "tolerance": "0.001",
            "round_off": "4",
        },
    )
    assert response.status_code == 200
    assert b"Root: 1.5205" in response.data
    assert b"<th>f(xm)</th>" in response.data


def test_post_newton_raphson_shows_derivative(client):
    response = client.post(
        "/",
        data={
            "method": "newton_raphson",
            "function_expr": "x^2 - 2",
            "x0": "1",
            "round_off": "6",
        },
    )
    assert b"Derivative: 2*x" in response.data
    assert b"Root: 1.414214" in response.data


def test_post_secant(client):
    response = client.post(
        "/",
        data={"method": "secant", "function_expr": "x^2 - 4", "xa": "0", "xb": "2"},
    )
    assert b"Root: 2.0000" in response.data
    assert b"0.0000%" in response.data


@pytest.mark.parametrize(
    "data, message",
    [
        ({"method": "bisection", "function_expr": "x^3 - x - 2", "xl": "", "xr": "2",
          "tolerance": "0.001"}, b"XL is required."),
        ({"method": "secant", "function_expr": "x +", "xa": "0", "xb": "1"},
         b"Invalid function expression"),
        ({"method": "false_position", "function_expr": "x^2 + 1", "xl": "-1", "xr": "1",
          "tolerance": "0.001"}, b"must have opposite signs"),
        ({"method": "newton_raphson", "function_expr": "x^2 - 2", "x0": "1",
          "round_off": "0"}, b"Round off must be an integer of at least 1."),
        ({"method": "bisection", "function_expr": "  "}, b"Please provide f(x)."),
    ],
)
def test_post_reports_errors(client, data, message):
    response = client.post("/", data=data)
    assert response.status_code == 200
    assert message in response.data
