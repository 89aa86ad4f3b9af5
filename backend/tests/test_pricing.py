from datetime import date

from salesavvy.models import PriceHistory
from salesavvy.stores.product_store import ProductStore, original_price, price_as_of


def _history(*pairs):
    return [PriceHistory(prodcode="X", effdate=d, unitprice=p) for d, p in pairs]


HISTORY = _history(
    (date(2024, 6, 1), 12.0),
    (date(2023, 1, 1), 8.0),
    (date(2024, 1, 1), 10.0),
)


def test_price_is_latest_entry_not_after_reference_date():
    assert price_as_of(HISTORY, date(2024, 3, 15)) == 10.0
    assert price_as_of(HISTORY, date(2024, 1, 1)) == 10.0
    assert price_as_of(HISTORY, date(2024, 5, 31)) == 10.0
    assert price_as_of(HISTORY, date(2025, 1, 1)) == 12.0


def test_price_without_reference_date_is_global_latest():
    assert price_as_of(HISTORY) == 12.0


def test_price_before_first_entry_is_none():
    assert price_as_of(HISTORY, date(2022, 12, 31)) is None
    assert price_as_of([], date(2024, 1, 1)) is None


def test_original_price_is_earliest_entry():
    assert original_price(HISTORY) == 8.0
    assert original_price([]) is None


def test_store_current_price_matches_history(db_session, catalog):
    products = ProductStore(db_session)
    assert products.current_price("P001", date(2024, 5, 1)) == 10.0
    assert products.current_price("P001", date(2024, 6, 1)) == 12.5
    assert products.current_price("P001") == 12.5
    assert products.current_price("P001", date(2023, 1, 1)) is None
