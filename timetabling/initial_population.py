# timetabling/initial_population.py
from typing import AbstractSet, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence, Tuple
import math
import random

from .config import ScheduleSettings
from .constraints import theory_day_ok
from .grid import confirmed_slot, create_base_grid, free_slot
from .model import ClassUnit, Grid, Solution, SubjectDefinition, Teacher, LAB_LENGTH


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def build_subject_pool(
    cls: ClassUnit,
    capacity: int,
    free_percent: float,
    rng: random.Random,
    lab_subjects: AbstractSet[str] = frozenset(),
) -> Tuple[List[SubjectDefinition], List[Optional[SubjectDefinition]]]:
    """
    Reparte `capacity` celdas: un porcentaje de Free y el resto por créditos.
    Devuelve (sesiones de laboratorio, bolsa barajada de teoría). Cada sesión
    ocupa 3 celdas; en la bolsa None representa un periodo libre.
    """
    free_slots = round_half_up((free_percent / 100.0) * capacity)
    non_free = max(0, capacity - free_slots)

    subjects = [s for s in cls.subjects if not s.is_elective_group]
    theory = [s for s in subjects if s.name not in lab_subjects]
    total_credits = sum(max(0.0, s.credits) for s in subjects)

    sessions: List[SubjectDefinition] = []
    pool: List[Optional[SubjectDefinition]] = []
    if total_credits > 0:
        for s in subjects:
            periods = (max(0.0, s.credits) / total_credits) * non_free
            if s.name in lab_subjects:
                sessions.extend([s] * round_half_up(periods / LAB_LENGTH))
            else:
                pool.extend([s] * round_half_up(periods))
    while sessions and len(sessions) * LAB_LENGTH > non_free:
        sessions.pop()

    theory_cells = non_free - len(sessions) * LAB_LENGTH
    rng.shuffle(pool)
    del pool[theory_cells:]
    # El redondeo puede dejar huecos: se completan al azar
    while len(pool) < theory_cells and theory:
        pool.append(rng.choice(theory))
    while len(pool) < capacity - len(sessions) * LAB_LENGTH:
        pool.append(None)

    rng.shuffle(pool)
    return sessions, pool


def pick_teacher(
    teachers: Sequence[str],
    hours_left: MutableMapping[str, int],
    rng: random.Random,
    cost: int = 1,
) -> str:
    shuffled = list(teachers)
    rng.shuffle(shuffled)
    for tid in shuffled:
        if hours_left.get(tid, 0) >= cost:
            hours_left[tid] -= cost
            return tid
    return ""


def place_lab_sessions(
    grid: Grid,
    class_name: str,
    sessions: Sequence[SubjectDefinition],
    hours_left: MutableMapping[str, int],
    rng: random.Random,
) -> None:
    """Cada sesión va a 3 celdas vacías seguidas de un mismo día; si no hay lugar se descarta."""
    for s in sessions:
        starts = [
            (d, p)
            for d, row in enumerate(grid)
            for p in range(len(row) - LAB_LENGTH + 1)
            if all(row[p + k] is None for k in range(LAB_LENGTH))
        ]
        if not starts:
            continue
        d, p = rng.choice(starts)
        slot = confirmed_slot(s.name, class_name, pick_teacher(s.teachers, hours_left, rng, LAB_LENGTH))
        for k in range(LAB_LENGTH):
            grid[d][p + k] = slot


def _take_from_pool(
    pool: List[Optional[SubjectDefinition]],
    grid: Grid,
    day: int,
    period: int,
) -> Optional[SubjectDefinition]:
    # Desde el final de la bolsa, la primera materia que respeta la regla diaria
    for i in range(len(pool) - 1, -1, -1):
        subject = pool[i]
        if subject is None or theory_day_ok(grid, day, period, subject.name):
            return pool.pop(i)
    return None


def initialize_chromosome(
    classes: Iterable[ClassUnit],
    teachers: Iterable[Teacher],
    settings: ScheduleSettings,
    rng: random.Random,
    lab_subjects: Optional[Mapping[str, AbstractSet[str]]] = None,
) -> Solution:
    hours_left: Dict[str, int] = {t.id: int(t.weekly_required_hours or 0) for t in teachers}
    days, hours = settings.days, settings.hours
    capacity = days * (hours - len(settings.break_slots))

    chromosome: Solution = {}
    for cls in classes:
        labs = (lab_subjects or {}).get(cls.name, frozenset())
        grid = create_base_grid(days, hours, settings.break_slots)
        sessions, pool = build_subject_pool(cls, capacity, settings.free_period_percentage, rng, labs)
        place_lab_sessions(grid, cls.name, sessions, hours_left, rng)
        for d in range(days):
            for p in range(hours):
                if grid[d][p] is not None:
                    continue
                subject = _take_from_pool(pool, grid, d, p)
                if subject is None:
                    grid[d][p] = free_slot()
                    continue
                tid = pick_teacher(subject.teachers, hours_left, rng)
                grid[d][p] = confirmed_slot(subject.name, cls.name, tid)
        chromosome[cls.name] = grid
    return chromosome


def build_initial_population(
    classes: Iterable[ClassUnit],
    teachers: Iterable[Teacher],
    settings: ScheduleSettings,
    pop_size: int,
    rng: random.Random,
    lab_subjects: Optional[Mapping[str, AbstractSet[str]]] = None,
) -> List[Solution]:
    classes = list(classes)
    teachers = list(teachers)
    return [initialize_chromosome(classes, teachers, settings, rng, lab_subjects) for _ in range(pop_size)]
