"""Player selection — the ephemeral set of cells picked for purchase."""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Optional

from hexterra.models.hex import HexCell
from hexterra.util.events import SelectionChanged

if TYPE_CHECKING:
    from hexterra.util.events import EventBus


class Selection:
    """Selected cells plus the bulk-purchase mode flag.

    Every change emits SelectionChanged; no-op changes emit nothing.
    """

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self._events = event_bus
        self._cells: frozenset[HexCell] = frozenset()
        self._bulk_mode = False

    @property
    def cells(self) -> frozenset[HexCell]:
        return self._cells

    @property
    def bulk_mode(self) -> bool:
        return self._bulk_mode

    def __len__(self) -> int:
        return len(self._cells)

    def __contains__(self, cell: object) -> bool:
        return cell in self._cells

    def toggle(self, cell: HexCell) -> bool:
        """Add or remove ``cell``; returns True if it is now selected."""
        if cell in self._cells:
            self._set(self._cells - {cell}, self._bulk_mode)
            return False
        self._set(self._cells | {cell}, self._bulk_mode)
        return True

    def select_many(self, cells: Iterable[HexCell]) -> None:
        """Replace the selection."""
        self._set(frozenset(cells), self._bulk_mode)

    def set_bulk_mode(self, enabled: bool) -> None:
        """Switch bulk mode; leaving it also clears the selection."""
        if enabled:
            self._set(self._cells, True)
        else:
            self._set(frozenset(), False)

    def clear(self) -> None:
        """Empty the selection and leave bulk mode."""
        self._set(frozenset(), False)

    def _set(self, cells: frozenset[HexCell], bulk_mode: bool) -> None:
        if cells == self._cells and bulk_mode == self._bulk_mode:
            return
        self._cells = cells
        self._bulk_mode = bulk_mode
        if self._events is not None:
            self._events.emit(SelectionChanged(cells, bulk_mode))
