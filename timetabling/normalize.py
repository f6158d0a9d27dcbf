# timetabling/normalize.py
from collections import defaultdict
from dataclasses import replace
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from .grid import free_slot
from .model import Grid, Solution, Teacher, CONFIRMED, ELECTIVE


def normalize_grid(grid: Grid, class_name: str) -> Grid:
    """Celdas vacías -> Free; confirmadas y electivas llevan el nombre de la clase."""
    for row in grid:
        for p, cell in enumerate(row):
            if cell is None:
                row[p] = free_slot()
            elif cell.status in (CONFIRMED, ELECTIVE) and cell.class_name != class_name:
                row[p] = replace(cell, class_name=class_name)
    return grid


def normalize_timetables(timetables: Solution) -> Solution:
    for class_name, grid in timetables.items():
        normalize_grid(grid, class_name)
    return timetables


def compute_teacher_usage(
    timetables: Solution,
    elective_teachers: Optional[Mapping[str, FrozenSet[str]]] = None,
) -> Dict[str, int]:
    """
    Periodos usados por docente. Con `elective_teachers`, cada celda electiva
    de una clase suma un periodo a todos los docentes de sus grupos electivos.
    """
    usage: Dict[str, int] = defaultdict(int)
    for class_name, grid in timetables.items():
        attached = (elective_teachers or {}).get(class_name, frozenset())
        for row in grid:
            for cell in row:
                if cell is None:
                    continue
                if cell.status == CONFIRMED and cell.teacher_id:
                    usage[cell.teacher_id] += 1
                elif cell.status == ELECTIVE:
                    for tid in attached:
                        usage[tid] += 1
    return dict(usage)


def compute_teacher_hours_left(teachers: Iterable[Teacher], usage: Mapping[str, int]) -> Dict[str, int]:
    return {
        t.id: max(0, int(t.weekly_required_hours or 0) - usage.get(t.id, 0))
        for t in teachers
    }
