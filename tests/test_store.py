# tests/test_store.py
import pytest

from parking_gateway.models import DiscountTypeConfig
from parking_gateway.store import InMemoryDiscountTypeStore, StoreState


def test_bootstrap_is_explicit_and_idempotent():
    store = InMemoryDiscountTypeStore()
    assert store.state is StoreState.UNINITIALIZED
    with pytest.raises(RuntimeError):
        store.get_by_code("24hour")

    store.bootstrap()
    store.update("24hour", jsessionid="KEEP")
    store.bootstrap()
    assert store.state is StoreState.READY
    assert store.get_by_code("24hour").jsessionid == "KEEP"
    assert [t.code for t in store.list_all()] == ["24hour", "5day"]


def test_reads_are_copies(store):
    record = store.get_by_code("24hour")
    record.jsessionid = "CHANGED"
    assert store.get_by_code("24hour").jsessionid == "SESS24"


def test_update_unknown_code(store):
    assert store.update("missing", jsessionid="X") is None


def test_list_all_orders_seeded_types_by_sort_order():
    store = InMemoryDiscountTypeStore(seed=[
        DiscountTypeConfig(code="5day", name="5d", sortOrder=2),
        DiscountTypeConfig(code="4hour", name="4h", sortOrder=0),
    ])
    store.bootstrap()
    assert [t.code for t in store.list_all()] == ["4hour", "5day"]
