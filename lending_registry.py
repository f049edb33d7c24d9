#!/usr/bin/env python3
"""
lending_registry.py
"""

from __future__ import annotations
import logging
import pathlib
from typing import Dict, Iterator, List, Optional, Union

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field, model_validator

from record_codec import RecordError, decode_records, encode_records

# Configuration
EMPTY_DESCRIPTION = "No description was added."
DEFAULT_EXPORT_FILE = "lending_export.json"

# Logging
logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger("LendingRegistry")


class LendableItem:
    """
    A single titled item that is either available or held by one named holder.

    The title is the identity key and never changes. Availability changes only
    through `borrow` and `return_item`.
    """

    def __init__(self, title: str, author: str, description: Optional[str] = None):
        self._title = title
        self._author = author
        self._description = description
        # None while available
        self._holder: Optional[str] = None

    @classmethod
    def from_record(cls, record: "ItemRecord") -> "LendableItem":
        item = cls(record.title, record.author, record.description)
        if not record.is_available:
            item._holder = record.renter
        return item

    def to_record(self) -> "ItemRecord":
        return ItemRecord(title=self._title, author=self._author, description=self._description,
                          isAvailable=self.is_available, renter=self._holder)

    @property
    def title(self) -> str:
        return self._title

    @property
    def author(self) -> str:
        return self._author

    @property
    def description(self) -> Optional[str]:
        return self._description

    @property
    def holder(self) -> Optional[str]:
        return self._holder

    @property
    def is_available(self) -> bool:
        return self._holder is None

    def borrow(self, holder: str) -> bool:
        """
        Hand the item to `holder`.

        Returns False if the item is already held (or no holder is given), True otherwise.
        """
        if not self.is_available or holder is None:
            logger.debug("Rejected borrow of '%s' by %s", self._title, holder)
            return False
        self._holder = holder
        return True

    def return_item(self, holder: str) -> bool:
        """
        Take the item back from `holder`.

        Returning an available item is a no-op that succeeds. Returns False only
        when the item is held by somebody else.
        """
        if self.is_available:
            return True
        if self._holder != holder:
            logger.debug("Rejected return of '%s' by %s (held by %s)", self._title, holder, self._holder)
            return False
        self._holder = None
        return True

    def detail(self) -> str:
        lines = [
            self._title,
            f"By {self._author}.",
            self._description or EMPTY_DESCRIPTION,
            "Available to borrow" if self.is_available else f"Borrowed by {self._holder}",
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        state = "available" if self.is_available else f"held by {self._holder!r}"
        return f"LendableItem({self._title!r}, {self._author!r}, {state})"


class ItemRecord(BaseModel):
    """Serialized form of a LendableItem. Key order is part of the format."""

    model_config = ConfigDict(strict=True, extra="forbid")

    title: str
    author: str
    description: Optional[str]
    is_available: bool = Field(alias="isAvailable")
    renter: Optional[str]

    @model_validator(mode="after")
    def _check_availability(self) -> "ItemRecord":
        if self.is_available and self.renter is not None:
            raise ValueError("an available item cannot have a renter")
        if not self.is_available and self.renter is None:
            raise ValueError("an unavailable item must name its renter")
        return self


class LendingRegistry:
    """
    LendingRegistry keeps lendable items keyed by title, in insertion order.

    It orchestrates borrow/return on behalf of a holder, produces the text
    listings used by the console, and exports/imports its whole state as a
    JSON record collection.
    """

    def __init__(self):
        self._items: Dict[str, LendableItem] = {}

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, title: object) -> bool:
        return title in self._items

    def __iter__(self) -> Iterator[LendableItem]:
        return iter(list(self._items.values()))

    # ---------------- Core operations ----------------
    def add_item(self, item: LendableItem) -> bool:
        """
        Add a new item to the registry.

        Returns True on success, False if an item with the same title already exists.
        """
        if item.title in self._items:
            logger.debug("Attempt to add existing item: %s", item.title)
            return False
        self._items[item.title] = item
        logger.info("Added item '%s'", item.title)
        return True

    def find_by_title(self, title: str) -> Optional[LendableItem]:
        return self._items.get(title)

    def borrow(self, title: str, holder: str) -> bool:
        """
        Borrow the item called `title` for `holder`.

        Returns False for an unknown title or an item that is already held.
        """
        item = self._items.get(title)
        if item is None:
            logger.debug("Borrow of unknown item: %s", title)
            return False
        if not item.is_available:
            logger.debug("Item '%s' is already held by %s", title, item.holder)
            return False
        ok = item.borrow(holder)
        if ok:
            logger.info("Item '%s' borrowed by %s", title, holder)
        return ok

    def return_item(self, title: str, holder: str) -> bool:
        """
        Return the item called `title` on behalf of `holder`.

        Returns False for an unknown title, an item nobody holds, or a holder
        other than the one who borrowed it.
        """
        item = self._items.get(title)
        if item is None:
            logger.debug("Return of unknown item: %s", title)
            return False
        if item.is_available:
            logger.debug("Item '%s' is not borrowed", title)
            return False
        ok = item.return_item(holder)
        if ok:
            logger.info("Item '%s' returned by %s", title, holder)
        return ok

    # ---------------- Listings ----------------
    def _available(self) -> List[LendableItem]:
        return [item for item in self._items.values() if item.is_available]

    def _held(self) -> List[LendableItem]:
        return [item for item in self._items.values() if not item.is_available]

    def list_available(self) -> str:
        lines = ["== Available Items =="]
        lines.extend(f"{item.title} by {item.author}" for item in self._available())
        return "\n".join(lines)

    def list_all(self) -> str:
        """Available items first, then borrowed items annotated with their holder."""
        lines = [self.list_available(), "== Unavailable/Borrowed Items =="]
        lines.extend(f"{item.title} by {item.author}: Borrowed by {item.holder}" for item in self._held())
        return "\n".join(lines)

    def export_report_items(self) -> pd.DataFrame:
        """
        Produce a DataFrame suitable for reporting the registry contents.

        Columns: Title, Author, Description, Availability (Available/Borrowed), Holder.
        """
        rows = [{
            "Title": item.title,
            "Author": item.author,
            "Description": item.description or "",
            "Availability": "Available" if item.is_available else "Borrowed",
            "Holder": item.holder or "",
        } for item in self._items.values()]
        return pd.DataFrame(rows, columns=["Title", "Author", "Description", "Availability", "Holder"])

    # ---------------- Export / Import ----------------
    def export_json(self) -> str:
        return serialize_registry(self)

    def import_json(self, data: Union[str, bytes]) -> None:
        """
        Replace the whole registry state with the contents of `data`.

        Raises RecordError if `data` is malformed; the current state is kept in that case.
        """
        loaded = deserialize_registry(data)
        self._items = loaded._items
        logger.info("Imported %d items", len(self._items))


def serialize_registry(registry: LendingRegistry) -> str:
    """Encode every item of `registry`, in listing order, as one string."""
    return encode_records(item.to_record() for item in registry)


def deserialize_registry(data: Union[str, bytes]) -> LendingRegistry:
    """
    Build a new LendingRegistry from an exported string.

    Raises RecordError for unparsable data, invalid records or duplicate titles.
    """
    registry = LendingRegistry()
    for record in decode_records(data, ItemRecord):
        if record.title in registry:
            raise RecordError(f"Duplicate title in import: {record.title!r}")
        registry._items[record.title] = LendableItem.from_record(record)
    return registry


# ---------------- CLI ----------------
def input_prompt(prompt: str) -> str:
    """
    Wrapper around built-in input() that returns a stripped string and handles interrupts.

    Returns an empty string on EOF/KeyboardInterrupt.
    """
    try:
        return input(prompt).strip()
    except (EOFError, KeyboardInterrupt):
        print()
        return ""


def default_export_path() -> pathlib.Path:
    # Resolve relative to this module so the console works from any CWD
    exports_dir = pathlib.Path(__file__).resolve().parent / "exports"
    exports_dir.mkdir(parents=True, exist_ok=True)
    return exports_dir / DEFAULT_EXPORT_FILE


def print_menu():
    print("=== MENU ===")
    print("1. Management: Add item")
    print("2. User: List available items")
    print("3. User: List all items")
    print("4. User: Find/borrow/return an item")
    print("5. User: Log out")
    print("6. Management: Export data")
    print("7. Management: Import data")
    print("8. Management: Terminate app")


def _item_menu(registry: LendingRegistry, username: str) -> None:
    title = input_prompt("Search title: ")
    item = registry.find_by_title(title)
    if item is None:
        print("Item not found!")
        return

    print(item.detail())
    print("=== MENU ===")
    print("1. Borrow")
    print("2. Return")
    print("3. Back")
    action = input_prompt("Select action: ")
    if action == "1":
        if registry.borrow(item.title, username):
            print("Item borrowed!")
        else:
            print("Cannot borrow item! It is most likely borrowed by another person.")
    elif action == "2":
        if registry.return_item(item.title, username):
            print("Item returned!")
        else:
            print("Cannot return item! Did you borrow it? You may need to log in as another user.")
    elif action == "3":
        print("Returning to menu.")
    else:
        print("Invalid action! Automatically returning to main menu.")


def _export(registry: LendingRegistry) -> None:
    result = registry.export_json()
    print(result)
    target = input_prompt(f"Save to file (Enter for exports/{DEFAULT_EXPORT_FILE}, '-' to skip): ")
    if target == "-":
        return
    path = pathlib.Path(target) if target else default_export_path()
    try:
        path.write_text(result, encoding="utf-8")
    except OSError as e:
        print(f"Export failed: {e}")
        return
    print(f"Export written to {path}")


def _import(registry: LendingRegistry) -> None:
    data = input_prompt("Enter exported JSON, or a path to a file containing it: ")
    if data and not data.lstrip().startswith("["):
        path = pathlib.Path(data)
        if not path.is_file():
            print(f"File not found: {path}")
            return
        try:
            data = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            print(f"Import failed: {e}")
            return
    try:
        registry.import_json(data)
    except RecordError as e:
        print(f"Import failed: {e}")
        return
    print("Import successful!")


def cli_loop(registry: LendingRegistry, username: Optional[str] = None):
    """
    Interactive command-loop for the lending registry.

    The acting username is trusted as typed; logging out asks for a new one.
    """
    while True:
        if not username:
            username = input_prompt("Enter account username: ")
            if not username:
                print("A username is required.")
                continue
            print(f"Welcome, {username}!")
        print_menu()
        option = input_prompt("Select action: ")
        if option == "1":
            title = input_prompt("Set title: ")
            author = input_prompt("Set author: ")
            description = input_prompt("Set description (leave empty for none): ") or None
            if registry.add_item(LendableItem(title, author, description)):
                print("Item added!")
            else:
                print("Item already exists! Pick another title.")
        elif option == "2":
            print(registry.list_available())
        elif option == "3":
            print(registry.list_all())
        elif option == "4":
            _item_menu(registry, username)
        elif option == "5":
            print(f"Bye, {username}")
            username = None
        elif option == "6":
            _export(registry)
        elif option == "7":
            _import(registry)
        elif option == "8":
            confirm = input_prompt("Are you sure you want to terminate? All unsaved data will be lost! "
                                   "Type Y to confirm, anything else to abort: ")
            if confirm == "Y":
                print("Farewell")
                break
            print("Whew, another accidental data loss averted!")
        else:
            print("Enter a number from 1-8!")


def demo_run():
    """Start an interactive session on an empty registry."""
    registry = LendingRegistry()
    cli_loop(registry)


if __name__ == "__main__":
    demo_run()
