# timetabling/grid.py
from typing import Iterator, List, Optional, Sequence, Tuple

from .model import Grid, Slot, BREAK, CONFIRMED, ELECTIVE, FREE


def break_slot() -> Slot:
    return Slot(subject_name="Break", class_name="", status=BREAK, teacher_id="")


def elective_slot(class_name: str = "") -> Slot:
    return Slot(subject_name="Elective", class_name=class_name, status=ELECTIVE, teacher_id="")


def free_slot() -> Slot:
    return Slot(subject_name="Free", class_name="", status=FREE, teacher_id="")


def confirmed_slot(subject_name: str, class_name: str, teacher_id: str = "") -> Slot:
    return Slot(subject_name=subject_name, class_name=class_name, status=CONFIRMED, teacher_id=teacher_id or "")


def empty_grid(days: int, hours: int) -> Grid:
    return [[None for _ in range(hours)] for _ in range(days)]


def create_base_grid(
    days: int,
    hours: int,
    break_slots: Sequence[int] = (),
    elective_indices: Sequence[int] = (),
) -> Grid:
    """
    Grilla inicial de una clase: recreos en todos los días y marcadores de
    electivo rotados por día ((p + día) mod horas) para que no caigan siempre
    en el mismo periodo. Si la posición está ocupada se avanza (con vuelta)
    hasta la primera celda libre del día.
    """
    grid = empty_grid(days, hours)
    for d in range(days):
        for p in break_slots or []:
            if 0 <= p < hours:
                grid[d][p] = break_slot()

        for p in elective_indices or []:
            pos = (int(p) + d) % hours
            for shift in range(hours):
                np_ = (pos + shift) % hours
                if grid[d][np_] is None:
                    grid[d][np_] = elective_slot()
                    break
    return grid


def clone_grid(grid: Grid) -> Grid:
    # Los Slot son inmutables: basta con copiar las filas
    return [list(row) for row in grid]


def clone_solution(solution):
    return {name: clone_grid(grid) for name, grid in solution.items()}


def iter_cells(grid: Grid) -> Iterator[Tuple[int, int, Optional[Slot]]]:
    for d, row in enumerate(grid):
        for p, cell in enumerate(row):
            yield d, p, cell


def cells_with_status(grid: Grid, status: str) -> List[Tuple[int, int]]:
    return [(d, p) for d, p, cell in iter_cells(grid) if cell is not None and cell.status == status]


def is_confirmed(cell: Optional[Slot]) -> bool:
    return cell is not None and cell.status == CONFIRMED
