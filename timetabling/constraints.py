# timetabling/constraints.py
from collections import defaultdict
from typing import AbstractSet, DefaultDict, Iterable, Iterator, List, Optional, Set, Tuple

from .grid import confirmed_slot, is_confirmed
from .model import DemandItem, Grid, Slot, CONFIRMED, LAB_LENGTH


class TeacherBusy:
    """
    Ocupación de docentes (día, periodo) compartida entre todas las clases de
    UNA solución candidata. Se crea nueva para cada hormiga.
    """

    def __init__(self):
        self._busy: DefaultDict[Tuple[int, int], Set[str]] = defaultdict(set)

    def is_busy(self, teacher_id: str, day: int, period: int) -> bool:
        if not teacher_id:
            return False
        return teacher_id in self._busy.get((day, period), ())

    def mark(self, teacher_id: str, day: int, period: int) -> None:
        if teacher_id:
            self._busy[(day, period)].add(teacher_id)

    def block(self, teachers: Iterable[str], day: int, period: int) -> None:
        for tid in teachers:
            self.mark(tid, day, period)

    def teachers_at(self, day: int, period: int) -> Set[str]:
        return set(self._busy.get((day, period), ()))


def theory_day_ok(grid: Grid, day: int, period: int, subject_name: str) -> bool:
    """Teoría: máximo dos veces por día y, si son dos, en periodos contiguos."""
    count = 0
    last = None
    for p, cell in enumerate(grid[day]):
        if cell is not None and cell.status == CONFIRMED and cell.subject_name == subject_name:
            count += 1
            last = p
    if count >= 2:
        return False
    if count == 1 and abs(last - period) != 1:
        return False
    return True


def can_place(grid: Grid, day: int, period: int, item: DemandItem, busy: TeacherBusy) -> bool:
    hours = len(grid[day])
    end = period + item.length
    if end > hours:
        return False
    for p in range(period, end):
        if grid[day][p] is not None:
            return False
        if busy.is_busy(item.teacher_id, day, p):
            return False
    if not item.is_lab and not theory_day_ok(grid, day, period, item.subject_name):
        return False
    return True


def place(grid: Grid, day: int, period: int, item: DemandItem, class_name: str, busy: TeacherBusy) -> None:
    slot = confirmed_slot(item.subject_name, class_name, item.teacher_id)
    for p in range(period, period + item.length):
        grid[day][p] = slot
        busy.mark(item.teacher_id, day, p)


def theory_row_ok(row: List[Optional[Slot]], lab_subjects: AbstractSet[str] = frozenset()) -> bool:
    """La regla diaria de teoría sobre una fila completa ya armada."""
    positions: DefaultDict[str, List[int]] = defaultdict(list)
    for p, cell in enumerate(row):
        if is_confirmed(cell) and cell.subject_name not in lab_subjects:
            positions[cell.subject_name].append(p)
    for idxs in positions.values():
        if len(idxs) > 2 or (len(idxs) == 2 and idxs[1] - idxs[0] != 1):
            return False
    return True


def lab_block_bounds(
    row: List[Optional[Slot]],
    period: int,
    lab_subjects: AbstractSet[str],
) -> Optional[Tuple[int, int]]:
    """
    (inicio, fin) del bloque de laboratorio que contiene `period`, o None si
    la celda no es de laboratorio. Una racha de la misma materia se corta en
    bloques de 3 desde su primer periodo.
    """
    cell = row[period]
    if not is_confirmed(cell) or cell.subject_name not in lab_subjects:
        return None
    start = period
    while start > 0 and is_confirmed(row[start - 1]) and row[start - 1].subject_name == cell.subject_name:
        start -= 1
    start += ((period - start) // LAB_LENGTH) * LAB_LENGTH
    end = start
    while (
        end < len(row)
        and end - start < LAB_LENGTH
        and is_confirmed(row[end])
        and row[end].subject_name == cell.subject_name
    ):
        end += 1
    return start, end


def iter_units(grid: Grid, lab_subjects: AbstractSet[str] = frozenset()) -> Iterator[Tuple[int, Tuple[int, ...]]]:
    """Unidades confirmadas de una grilla: cada periodo de teoría o cada bloque de laboratorio."""
    for d, row in enumerate(grid):
        p = 0
        while p < len(row):
            if not is_confirmed(row[p]):
                p += 1
                continue
            bounds = lab_block_bounds(row, p, lab_subjects)
            if bounds is None:
                yield d, (p,)
                p += 1
            else:
                yield d, tuple(range(bounds[0], bounds[1]))
                p = bounds[1]
