"""
In-memory shift and template store backing the demo API.

Shift persistence proper lives in the front end's repositories; the back end
keeps just enough state to exercise the guards and notifications.
"""

import datetime as dt
from itertools import count

from dispo.schemas.schemas import Shift, ShiftTemplate


class ShiftStore:
    def __init__(self) -> None:
        self._shifts: dict[int, Shift] = {}
        self._templates: dict[int, ShiftTemplate] = {}
        self._shift_ids = count(1)
        self._template_ids = count(1)

    def next_shift_id(self) -> int:
        return next(self._shift_ids)

    def next_template_id(self) -> int:
        return next(self._template_ids)

    def put_shift(self, shift: Shift) -> None:
        self._shifts[shift.id] = shift

    def get_shift(self, shift_id: int) -> Shift | None:
        return self._shifts.get(shift_id)

    def shifts(self) -> list[Shift]:
        return list(self._shifts.values())

    def put_template(self, template: ShiftTemplate) -> None:
        self._templates[template.id] = template

    def templates(self) -> list[ShiftTemplate]:
        return list(self._templates.values())


def seeded_store() -> ShiftStore:
    """Store with the sample data shown in the UI demo."""
    store = ShiftStore()
    day = dt.date(2025, 1, 15)
    store.put_shift(Shift(id=store.next_shift_id(), date=day, start="06:00", end="14:00", type="Früh"))
    store.put_shift(Shift(
        id=store.next_shift_id(), date=day, start="14:00", end="22:00", type="Spät",
        status="assigned", assigned_to="disp@stadtwerke-augsburg.de",
    ))
    store.put_template(ShiftTemplate(id=store.next_template_id(), name="Frühdienst", start="06:00", end="14:00"))
    return store
