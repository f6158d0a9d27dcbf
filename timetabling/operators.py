import random
from dataclasses import replace
from collections import defaultdict
from typing import AbstractSet, DefaultDict, List, Mapping, Optional, Sequence, Set, Tuple

from .constraints import iter_units, lab_block_bounds, theory_row_ok
from .grid import clone_grid, clone_solution, is_confirmed
from .model import Grid, Solution, LAB_LENGTH

SubjectTeachers = Mapping[str, Mapping[str, Sequence[str]]]
LabSubjects = Optional[Mapping[str, AbstractSet[str]]]


def tournament_select(
    population: List[Solution],
    scores: Sequence[float],
    rng: random.Random,
    k: int = 3,
) -> Solution:
    """Torneo: el mejor de k individuos tomados al azar."""
    best_idx = rng.randrange(len(population))
    for _ in range(k - 1):
        idx = rng.randrange(len(population))
        if scores[idx] > scores[best_idx]:
            best_idx = idx
    return population[best_idx]


def crossover(parent_a: Solution, parent_b: Solution, class_names: Sequence[str], rng: random.Random) -> Solution:
    """Cruce por clase: cada grilla completa viene de uno u otro padre, nunca se parte."""
    child: Solution = {}
    for name in class_names:
        source = parent_a if rng.random() < 0.5 else parent_b
        child[name] = clone_grid(source[name])
    return child


def _non_break_coords(days: int, hours: int, break_slots: AbstractSet[int]) -> List[Tuple[int, int]]:
    return [(d, p) for d in range(days) for p in range(hours) if p not in break_slots]


def _is_lab_cell(grid: Grid, d: int, p: int, labs: AbstractSet[str]) -> bool:
    cell = grid[d][p]
    return is_confirmed(cell) and cell.subject_name in labs


def _swap_theory_cells(grid: Grid, coords: List[Tuple[int, int]], labs: AbstractSet[str], rng: random.Random) -> None:
    movable = [(d, p) for d, p in coords if not _is_lab_cell(grid, d, p, labs)]
    if len(movable) < 2:
        return
    d1, p1 = rng.choice(movable)
    d2, p2 = rng.choice(movable)
    grid[d1][p1], grid[d2][p2] = grid[d2][p2], grid[d1][p1]
    if not (theory_row_ok(grid[d1], labs) and theory_row_ok(grid[d2], labs)):
        grid[d1][p1], grid[d2][p2] = grid[d2][p2], grid[d1][p1]


def _move_lab_block(grid: Grid, coords: List[Tuple[int, int]], labs: AbstractSet[str], rng: random.Random) -> None:
    blocks = [
        (d, periods) for d, periods in iter_units(grid, labs)
        if len(periods) == LAB_LENGTH and grid[d][periods[0]].subject_name in labs
    ]
    if not blocks:
        return
    d1, periods = rng.choice(blocks)
    s1 = periods[0]
    allowed = set(coords)
    targets = []
    for d2, s2 in coords:
        cells = [(d2, s2 + k) for k in range(LAB_LENGTH)]
        if not all(c in allowed and not _is_lab_cell(grid, c[0], c[1], labs) for c in cells):
            continue
        if d2 == d1 and abs(s2 - s1) < LAB_LENGTH:
            continue
        targets.append((d2, s2))
    if not targets:
        return
    d2, s2 = rng.choice(targets)
    for k in range(LAB_LENGTH):
        grid[d1][s1 + k], grid[d2][s2 + k] = grid[d2][s2 + k], grid[d1][s1 + k]
    if not (theory_row_ok(grid[d1], labs) and theory_row_ok(grid[d2], labs)):
        for k in range(LAB_LENGTH):
            grid[d1][s1 + k], grid[d2][s2 + k] = grid[d2][s2 + k], grid[d1][s1 + k]


def mutate(
    chromosome: Solution,
    subject_teachers: SubjectTeachers,
    break_slots: Sequence[int],
    mutation_rate: float,
    rng: random.Random,
    staffable: AbstractSet[str],
    lab_subjects: LabSubjects = None,
) -> Solution:
    """
    Por clase, con probabilidad `mutation_rate`: intercambia dos celdas de
    teoría o libres que no son recreo (en cualquier día), mueve un bloque de
    laboratorio entero a otras 3 celdas seguidas y, con probabilidad 0.5,
    cambia el docente de una celda confirmada (o de su bloque) por otro
    elegible. Los cambios que rompen la regla diaria de teoría se deshacen.
    """
    mutated = clone_solution(chromosome)
    breaks = set(break_slots)
    for name, grid in mutated.items():
        if rng.random() > mutation_rate:
            continue
        labs = (lab_subjects or {}).get(name, frozenset())
        days = len(grid)
        hours = len(grid[0]) if days else 0
        coords = _non_break_coords(days, hours, breaks)

        _swap_theory_cells(grid, coords, labs, rng)
        if labs:
            _move_lab_block(grid, coords, labs, rng)

        if coords and rng.random() < 0.5:
            d, p = rng.choice(coords)
            cell = grid[d][p]
            if is_confirmed(cell):
                candidates = [
                    t for t in subject_teachers.get(name, {}).get(cell.subject_name, ())
                    if t in staffable
                ]
                if candidates:
                    slot = replace(cell, teacher_id=rng.choice(candidates))
                    start, end = lab_block_bounds(grid[d], p, labs) or (p, p + 1)
                    for q in range(start, end):
                        grid[d][q] = slot
    return mutated


def repair_teacher_conflicts(
    chromosome: Solution,
    subject_teachers: SubjectTeachers,
    staffable: AbstractSet[str],
    rng: random.Random,
    lab_subjects: LabSubjects = None,
) -> Solution:
    """
    Ajusta el individuo para que ningún docente quede en dos clases a la
    misma hora. Las clases se recorren en orden y cada unidad (un periodo de
    teoría o un bloque de laboratorio completo) conserva su docente si está
    libre; si no, pasa a otro docente elegible libre en todos sus periodos o
    queda vacío. Los docentes sin carga objetivo también se reemplazan.
    """
    taken: DefaultDict[Tuple[int, int], Set[str]] = defaultdict(set)
    for name, grid in chromosome.items():
        labs = (lab_subjects or {}).get(name, frozenset())
        for d, periods in list(iter_units(grid, labs)):
            cell = grid[d][periods[0]]
            tid = cell.teacher_id
            if not tid:
                continue
            if tid in staffable and all(tid not in taken[(d, p)] for p in periods):
                for p in periods:
                    taken[(d, p)].add(tid)
                continue
            alternatives = [
                t for t in subject_teachers.get(name, {}).get(cell.subject_name, ())
                if t in staffable and all(t not in taken[(d, p)] for p in periods)
            ]
            new_tid = rng.choice(alternatives) if alternatives else ""
            slot = replace(cell, teacher_id=new_tid)
            for p in periods:
                grid[d][p] = slot
                if new_tid:
                    taken[(d, p)].add(new_tid)
    return chromosome
