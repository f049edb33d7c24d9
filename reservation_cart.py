#!/usr/bin/env python3
"""
reservation_cart.py

Stocked products, a reservation cart that draws from them, and a small demo.

This module provides:
- StockItem: a product with a unit price and an integer quantity on hand
- ReservationCart: reservations keyed by the product's (name, price) identity,
  settled at checkout
- A catalog codec that exports/imports stock items as JSON record collections
- Reporting helpers (pandas frames and a stock-level bar chart)

Typical usage:
    python reservation_cart.py --catalog catalog.json --plot stock.png

The public entrypoint is `main(argv)`, which replays the demo shopping session
against the loaded catalog.
"""
from __future__ import annotations
import argparse
import logging
import math
from pathlib import Path
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

import matplotlib.pyplot as plt
import pandas as pd
from pydantic import BaseModel, ConfigDict, field_validator

from record_codec import RecordError, decode_records, encode_records, format_number

plt.rcParams.update({"figure.max_open_warning": 0})

# -------------------- Config -------------------- #
EMPTY_CART_MESSAGE = "Your cart is empty!"
DEFAULT_PLOT_FILE = "stock_levels.png"

Number = Union[int, float]

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger("ReservationCart")


# -------------------- Entities -------------------- #
class StockItem:
    """
    A product with a unit price and a non-negative quantity on hand.

    Args:
        name: product name.
        price: non-negative unit price.
        stock: initial quantity on hand.
        allow_non_positive: when False (the default) `take_items` and
            `load_items` reject quantities of zero or less. When True they only
            refuse moves that would drive the stock below zero.
    """

    def __init__(self, name: str, price: Number, stock: int, allow_non_positive: bool = False):
        if price < 0:
            raise ValueError(f"price must be non-negative, got {price}")
        if stock < 0:
            raise ValueError(f"stock must be non-negative, got {stock}")
        self._name = name
        self._price = price
        self._stock = stock
        self.allow_non_positive = allow_non_positive

    @property
    def name(self) -> str:
        return self._name

    @property
    def price(self) -> Number:
        return self._price

    @property
    def stock(self) -> int:
        return self._stock

    def _rejects(self, qty: int) -> bool:
        return qty <= 0 and not self.allow_non_positive

    def take_items(self, qty: int) -> bool:
        """
        Take `qty` units away from the stock.

        Returns False (stock unchanged) if fewer than `qty` units are on hand,
        or if `qty <= 0` and the item does not allow non-positive quantities.
        """
        if self._rejects(qty) or qty > self._stock:
            logger.debug("Cannot take %s x %s (stock %s)", qty, self._name, self._stock)
            return False
        self._stock -= qty
        return True

    def load_items(self, qty: int) -> bool:
        """
        Put `qty` units back into the stock.

        Returns False (stock unchanged) if `qty <= 0` and the item does not allow
        non-positive quantities, or if the load would drive the stock below zero.
        """
        if self._rejects(qty) or self._stock + qty < 0:
            logger.debug("Cannot load %s x %s (stock %s)", qty, self._name, self._stock)
            return False
        self._stock += qty
        return True

    def stock_report(self) -> str:
        return f"{self._name}\t{format_number(self._price)}\tx{self._stock}"

    def to_record(self) -> "StockRecord":
        return StockRecord(name=self._name, price=self._price, stock=self._stock)

    def __repr__(self) -> str:
        return f"StockItem({self._name!r}, {self._price!r}, stock={self._stock})"


class ProductKey(NamedTuple):
    """Structural identity of a product inside a cart."""

    name: str
    price: Number

    @classmethod
    def of(cls, product: StockItem) -> "ProductKey":
        return cls(product.name, product.price)


class ReservationCart:
    """
    Reservations of stocked products, settled at checkout.

    Adding a product takes the units out of its stock immediately; removing it
    puts the whole reserved quantity back. Checkout consumes the reservations
    without restocking.
    """

    def __init__(self):
        self._items: Dict[ProductKey, int] = {}

    @property
    def items(self) -> Dict[ProductKey, int]:
        # Copy so callers cannot write through to the cart
        return dict(self._items)

    @property
    def total_price(self) -> Number:
        return sum(key.price * qty for key, qty in self._items.items())

    def __len__(self) -> int:
        return len(self._items)

    def add_product(self, product: StockItem, qty: int) -> bool:
        """
        Reserve `qty` units of `product`.

        Returns False and changes nothing if the product cannot supply them.
        A negative `qty` (only accepted with allow_non_positive) may release at
        most what the cart already holds for the product.
        """
        key = ProductKey.of(product)
        if qty < 0 and -qty > self._items.get(key, 0):
            logger.debug("Cannot release %s x %s, only %s reserved", -qty, product.name, self._items.get(key, 0))
            return False
        if not product.take_items(qty):
            logger.debug("Could not reserve %s x %s", qty, product.name)
            return False
        reserved = self._items.get(key, 0) + qty
        if reserved > 0:
            self._items[key] = reserved
        else:
            # only reachable with allow_non_positive
            self._items.pop(key, None)
        logger.info("Reserved %s x %s (now %s in cart)", qty, product.name, max(reserved, 0))
        return True

    def remove_product(self, product: StockItem) -> bool:
        """
        Release the whole reservation for `product` back into its stock.

        Returns False if the cart holds nothing for this product.
        """
        key = ProductKey.of(product)
        qty = self._items.get(key)
        if qty is None:
            logger.debug("Nothing reserved for %s", product.name)
            return False
        product.load_items(qty)
        del self._items[key]
        logger.info("Released %s x %s", qty, product.name)
        return True

    def summary(self) -> str:
        if not self._items:
            return EMPTY_CART_MESSAGE
        lines = [f"{key.name} - ${format_number(key.price)}\tx{qty}" for key, qty in self._items.items()]
        lines.append(f"Total Price: ${format_number(self.total_price)}")
        return "\n".join(lines)

    def checkout(self) -> str:
        """
        Settle the cart and return the printed bill.

        The reservations are cleared; the stock they came from is not restored.
        """
        total = self.total_price
        bill = "\n".join([" ==== BILL ==== ", self.summary(), f"User Charged ${format_number(total)}."])
        logger.info("Checked out %d line(s), charged %s", len(self._items), format_number(total))
        self._items = {}
        return bill

    def to_frame(self) -> pd.DataFrame:
        """Cart lines as a DataFrame with columns Name, Price, Quantity, Subtotal."""
        rows = [{"Name": key.name, "Price": key.price, "Quantity": qty, "Subtotal": key.price * qty}
                for key, qty in self._items.items()]
        return pd.DataFrame(rows, columns=["Name", "Price", "Quantity", "Subtotal"])


# -------------------- Catalog codec -------------------- #
class StockRecord(BaseModel):
    """Serialized form of a StockItem."""

    model_config = ConfigDict(strict=True, extra="forbid")

    name: str
    price: Union[int, float]
    stock: int

    @field_validator("price", "stock")
    @classmethod
    def _non_negative(cls, value):
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("must be a finite number")
        if value < 0:
            raise ValueError("must be non-negative")
        return value


def serialize_catalog(products: Iterable[StockItem]) -> str:
    return encode_records(p.to_record() for p in products)


def deserialize_catalog(data: Union[str, bytes], allow_non_positive: bool = False) -> List[StockItem]:
    """
    Build stock items from an exported catalog string.

    Raises RecordError for unparsable data, invalid records or a repeated
    (name, price) identity.
    """
    products: List[StockItem] = []
    seen = set()
    for record in decode_records(data, StockRecord):
        key = ProductKey(record.name, record.price)
        if key in seen:
            raise RecordError(f"Duplicate product in catalog: {record.name!r} at {record.price}")
        seen.add(key)
        products.append(StockItem(record.name, record.price, record.stock, allow_non_positive=allow_non_positive))
    return products


# -------------------- Reporting -------------------- #
def stock_frame(products: Iterable[StockItem]) -> pd.DataFrame:
    rows = [{"Name": p.name, "Price": p.price, "Stock": p.stock} for p in products]
    return pd.DataFrame(rows, columns=["Name", "Price", "Stock"])


def annotate_bar_values(ax, fmt="{:.0f}", fontsize=8, va="bottom"):
    """
    Add numeric labels on top of the bars in an Axes.

    Bars with NaN height are skipped.
    """
    for p in ax.patches:
        height = p.get_height()
        if height is None or (isinstance(height, float) and math.isnan(height)):
            continue
        x = p.get_x() + p.get_width() / 2
        ax.text(x, height, fmt.format(height), ha="center", va=va, fontsize=fontsize)


def save_plot(fig, path: Path) -> None:
    """Save a matplotlib figure to disk ensuring the parent directory exists."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, bbox_inches="tight")
    plt.close(fig)


def plot_stock_levels(products: Iterable[StockItem], path: Union[str, Path] = DEFAULT_PLOT_FILE) -> Path:
    """
    Draw a bar chart of the quantity on hand per product and save it as PNG.

    Args:
        products: stock items to chart, in display order.
        path: target PNG file.

    Returns:
        The path written.
    """
    path = Path(path)
    df = stock_frame(products)
    fig, ax = plt.subplots(figsize=(8, 5))
    if not df.empty:
        df.set_index("Name")["Stock"].plot(kind="bar", ax=ax)
        annotate_bar_values(ax)
    ax.set_title("Stock on Hand")
    ax.set_ylabel("Units")
    ax.set_xlabel("")
    plt.setp(ax.get_xticklabels(), rotation=45, ha="right")
    save_plot(fig, path)
    logger.info("Saved stock chart to %s", path)
    return path


# -------------------- Demo -------------------- #
def sample_catalog() -> List[StockItem]:
    return [StockItem("Apple", 2, 10), StockItem("Banana", 1, 5), StockItem("Carrot", 4, 3)]


def run_demo(products: Sequence[StockItem]) -> List[str]:
    """
    Replay the demo shopping session against `products`.

    Two carts are filled and checked out; between them every product except the
    last is restocked. Returns the lines that were printed.
    """
    out: List[str] = []

    def emit(text) -> None:
        out.append(str(text))
        print(text)

    def report(title: str) -> None:
        emit(title)
        for p in products:
            emit(p.stock_report())

    if not products:
        emit(EMPTY_CART_MESSAGE)
        return out

    first = products[0]
    cart = ReservationCart()
    emit(cart.add_product(first, 3))
    emit(cart.add_product(first, 3))
    emit(cart.add_product(first, 300))
    if len(products) > 1:
        emit(cart.add_product(products[1], 2))
    emit(cart.summary())
    emit(cart.checkout())
    emit(cart.summary())
    report("Stock after first checkout:")

    for p in products[:-1]:
        p.load_items(10)
    report("Restock done. New stock data:")

    cart2 = ReservationCart()
    for p in products:
        cart2.add_product(p, p.stock)
    cart2.remove_product(first)
    emit(cart2.checkout())
    report("Final stock:")
    return out


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Reservation cart demo")
    parser.add_argument("--catalog", help="Path to an exported catalog JSON file (default: built-in sample)")
    parser.add_argument("--export", help="Write the catalog after the demo to this JSON file")
    parser.add_argument("--plot", help=f"Save a stock-level chart after the demo (e.g. {DEFAULT_PLOT_FILE})")
    args = parser.parse_args(argv)

    if args.catalog:
        try:
            products = deserialize_catalog(Path(args.catalog).read_text(encoding="utf-8"))
        except (OSError, RecordError) as e:
            logger.error("Could not load catalog %s: %s", args.catalog, e)
            return 1
    else:
        products = sample_catalog()

    run_demo(products)

    if args.export:
        Path(args.export).write_text(serialize_catalog(products), encoding="utf-8")
        print("Catalog exported to:", Path(args.export).resolve())
    if args.plot:
        print("Saved plot:", plot_stock_levels(products, args.plot).resolve())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
