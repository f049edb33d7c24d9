import sys
import pathlib
sys.path.insert(0, str(pathlib.Path(__file__).resolve().parent.parent))

import matplotlib
matplotlib.use("Agg")

import pytest

from reservation_cart import (EMPTY_CART_MESSAGE, ProductKey, ReservationCart, StockItem, main,
                              plot_stock_levels, run_demo, sample_catalog, serialize_catalog, stock_frame)


@pytest.fixture
def apple():
    return StockItem("Apple", 2, 10)


@pytest.fixture
def banana():
    return StockItem("Banana", 1, 5)


# ---------------- StockItem ----------------
def test_take_then_load_restores_stock(apple):
    for qty in [1, 4, 10]:
        assert apple.take_items(qty)
        assert apple.load_items(qty)
        assert apple.stock == 10


def test_take_more_than_stock_fails(apple):
    assert not apple.take_items(11)
    assert apple.stock == 10
    assert apple.take_items(10)
    assert apple.stock == 0
    assert not apple.take_items(1)
    assert apple.stock == 0


def test_non_positive_take_rejected_by_default(apple):
    assert not apple.take_items(0)
    assert not apple.take_items(-3)
    assert not apple.load_items(0)
    assert not apple.load_items(-3)
    assert apple.stock == 10


def test_non_positive_take_allowed_when_permissive():
    item = StockItem("Apple", 2, 10, allow_non_positive=True)
    assert item.take_items(0)
    assert item.stock == 10
    assert item.take_items(-3)
    assert item.stock == 13
    assert item.load_items(-3)
    assert item.stock == 10


def test_load_never_drives_stock_negative(apple):
    assert apple.load_items(5)
    assert apple.stock == 15
    assert not apple.load_items(-20)
    assert apple.stock == 15


def test_stock_report(apple):
    assert apple.stock_report() == "Apple\t2\tx10"
    assert StockItem("Tea", 3.5, 1).stock_report() == "Tea\t3.5\tx1"


def test_invalid_construction():
    with pytest.raises(ValueError):
        StockItem("Apple", -1, 3)
    with pytest.raises(ValueError):
        StockItem("Apple", 1, -3)


# ---------------- ProductKey ----------------
def test_product_key_is_structural():
    a = StockItem("Apple", 2, 10)
    b = StockItem("Apple", 2, 1)
    assert ProductKey.of(a) == ProductKey.of(b)
    assert ProductKey.of(a) != ProductKey.of(StockItem("Apple", 3, 1))
    assert sorted([ProductKey("b", 1), ProductKey("a", 5), ProductKey("a", 2)]) == [
        ProductKey("a", 2), ProductKey("a", 5), ProductKey("b", 1)]


# ---------------- ReservationCart ----------------
def test_apple_scenario(apple, banana):
    cart = ReservationCart()
    assert cart.add_product(apple, 3)
    assert cart.add_product(apple, 3)
    assert apple.stock == 4
    assert cart.items == {ProductKey("Apple", 2): 6}
    assert cart.total_price == 12
    assert not cart.add_product(apple, 300)
    assert apple.stock == 4
    assert cart.items == {ProductKey("Apple", 2): 6}

    assert cart.add_product(banana, 2)
    bill = cart.checkout()
    assert "User Charged $14." in bill
    assert cart.items == {}
    assert cart.total_price == 0
    assert apple.stock == 4
    assert banana.stock == 3


def test_items_is_a_copy(apple):
    cart = ReservationCart()
    cart.add_product(apple, 2)
    cart.items[ProductKey("Apple", 2)] = 100
    assert cart.items == {ProductKey("Apple", 2): 2}


def test_remove_restocks_whole_reservation(apple):
    cart = ReservationCart()
    cart.add_product(apple, 3)
    cart.add_product(apple, 4)
    assert apple.stock == 3
    assert cart.remove_product(apple)
    assert apple.stock == 10
    assert len(cart) == 0
    assert not cart.remove_product(apple)
    assert apple.stock == 10


def test_remove_uses_structural_identity(apple):
    cart = ReservationCart()
    cart.add_product(apple, 3)
    twin = StockItem("Apple", 2, 0)
    assert cart.remove_product(twin)
    assert twin.stock == 3
    assert apple.stock == 7


def test_failed_add_leaves_cart_untouched(apple):
    cart = ReservationCart()
    assert not cart.add_product(apple, 0)
    assert not cart.add_product(apple, 11)
    assert len(cart) == 0
    assert apple.stock == 10


def test_total_tracks_interleaved_mutations(apple, banana):
    carrot = StockItem("Carrot", 4.5, 3)
    cart = ReservationCart()

    def expected():
        return sum(key.price * qty for key, qty in cart.items.items())

    steps = [
        lambda: cart.add_product(apple, 2),
        lambda: cart.add_product(carrot, 1),
        lambda: cart.add_product(banana, 5),
        lambda: cart.remove_product(apple),
        lambda: cart.add_product(carrot, 2),
        lambda: cart.add_product(apple, 1),
        lambda: cart.remove_product(banana),
        lambda: cart.add_product(banana, 6),
    ]
    for step in steps:
        step()
        assert cart.total_price == expected()
    assert cart.total_price == 2 * 1 + 4.5 * 3


def test_permissive_items_never_leave_non_positive_entries():
    item = StockItem("Apple", 2, 10, allow_non_positive=True)
    cart = ReservationCart()
    assert cart.add_product(item, 0)
    assert cart.items == {}
    assert cart.add_product(item, 3)
    assert cart.add_product(item, -3)
    assert cart.items == {}


def test_permissive_release_is_capped_at_reserved_quantity():
    item = StockItem("Apple", 2, 10, allow_non_positive=True)
    cart = ReservationCart()
    assert cart.add_product(item, 3)
    assert not cart.add_product(item, -5)
    assert item.stock == 7
    assert cart.items == {ProductKey("Apple", 2): 3}
    assert not cart.add_product(StockItem("Pear", 1, 4, allow_non_positive=True), -1)
    assert cart.add_product(item, -2)
    assert item.stock == 9
    assert cart.items == {ProductKey("Apple", 2): 1}


def test_summary_formats(apple, banana):
    cart = ReservationCart()
    assert cart.summary() == EMPTY_CART_MESSAGE
    cart.add_product(apple, 3)
    cart.add_product(banana, 2)
    assert cart.summary() == "Apple - $2\tx3\nBanana - $1\tx2\nTotal Price: $8"


def test_checkout_bill_and_empty_cart():
    cart = ReservationCart()
    assert cart.checkout() == f" ==== BILL ==== \n{EMPTY_CART_MESSAGE}\nUser Charged $0."


def test_to_frame(apple, banana):
    cart = ReservationCart()
    cart.add_product(apple, 3)
    cart.add_product(banana, 2)
    df = cart.to_frame()
    assert df["Subtotal"].tolist() == [6, 2]
    assert df["Subtotal"].sum() == cart.total_price


# ---------------- Reporting / demo ----------------
def test_stock_frame(apple, banana):
    df = stock_frame([apple, banana])
    assert list(df.columns) == ["Name", "Price", "Stock"]
    assert df["Stock"].tolist() == [10, 5]


def test_plot_stock_levels(tmp_path, apple, banana):
    out = plot_stock_levels([apple, banana], tmp_path / "plots" / "stock.png")
    assert out.exists()
    assert out.stat().st_size > 0


def test_run_demo_replays_session(capsys):
    products = sample_catalog()
    lines = run_demo(products)
    assert lines[:3] == ["True", "True", "False"]
    assert "User Charged $14." in "\n".join(lines)
    assert "User Charged $25." in "\n".join(lines)
    assert [p.stock for p in products] == [14, 0, 0]
    assert "Restock done. New stock data:" in capsys.readouterr().out


def test_run_demo_without_products():
    assert run_demo([]) == [EMPTY_CART_MESSAGE]


def test_main_with_catalog_export_and_plot(tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text(serialize_catalog(sample_catalog()), encoding="utf-8")
    exported = tmp_path / "after.json"
    plot = tmp_path / "stock.png"
    assert main(["--catalog", str(catalog), "--export", str(exported), "--plot", str(plot)]) == 0
    assert exported.read_text(encoding="utf-8") == serialize_catalog(
        [StockItem("Apple", 2, 14), StockItem("Banana", 1, 0), StockItem("Carrot", 4, 0)])
    assert plot.exists()


def test_main_with_bad_catalog(tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text("[{}]", encoding="utf-8")
    assert main(["--catalog", str(catalog)]) == 1
    assert main(["--catalog", str(tmp_path / "missing.json")]) == 1
