"""Tests for the marketplace error types."""
from errors import ErrorKind, OutOfStockError, RepositoryError


def test_out_of_stock_details_are_optional():
    error = OutOfStockError()

    assert error.to_dict() == {"error": "Not enough stock available", "code": "OUT_OF_STOCK"}
    assert (error.product_id, error.available, error.requested) == (None, None, None)


def test_out_of_stock_keeps_details():
    error = OutOfStockError(product_id="prod-a", available=1, requested=3)

    assert error.kind is ErrorKind.OUT_OF_STOCK
    assert (error.product_id, error.available, error.requested) == ("prod-a", 1, 3)


def test_repository_error_is_server_error():
    assert RepositoryError("Error placing order: boom").to_dict() == {
        "error": "Error placing order: boom",
        "code": "SERVER_ERROR",
    }
