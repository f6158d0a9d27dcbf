# timetabling/evaluation.py
from collections import defaultdict
from dataclasses import dataclass, field
from typing import DefaultDict, Dict, FrozenSet, Iterable, List, Mapping, Optional, Sequence

import numpy as np

from .config import PenaltyWeights
from .model import Solution, Teacher, BREAK, CONFIRMED, LAB_LENGTH, VALID_STATUSES


@dataclass
class EvaluationResult:
    penalty: float
    teacher_conflicts: int
    components: Dict[str, float]
    teacher_usage: Dict[str, int]
    violations: List[str] = field(default_factory=list)

    @property
    def score(self) -> float:
        return -self.penalty


def variance(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.var(np.asarray(values, dtype=float)))


def _is_confirmed(cell) -> bool:
    return cell is not None and cell.status == CONFIRMED


def evaluate_solution(
    timetables: Solution,
    teachers: Iterable[Teacher],
    weights: PenaltyWeights,
    lab_subjects: Optional[Mapping[str, FrozenSet[str]]] = None,
) -> EvaluationResult:
    """
    Penalización total de una solución (menor es mejor). Las sesiones de
    laboratorio no cuentan para repeticiones diarias, adyacencias ni rachas:
    sus bloques de 3 periodos son estructurales.
    """
    lab_subjects = lab_subjects or {}
    targets = {t.id: int(t.weekly_required_hours or 0) for t in teachers}
    grids = list(timetables.items())
    if not grids:
        return EvaluationResult(0.0, 0, {}, {})
    days = len(grids[0][1])
    hours = len(grids[0][1][0]) if days else 0

    comp: DefaultDict[str, float] = defaultdict(float)
    violations: List[str] = []

    # 1) Choques de docente entre clases en el mismo (día, periodo)
    conflicts = 0
    usage: DefaultDict[str, int] = defaultdict(int)
    day_load: DefaultDict[str, np.ndarray] = defaultdict(lambda: np.zeros(days, dtype=int))
    for d in range(days):
        for p in range(hours):
            seen = set()
            for class_name, grid in grids:
                cell = grid[d][p]
                if not _is_confirmed(cell) or not cell.teacher_id:
                    continue
                tid = cell.teacher_id
                usage[tid] += 1
                day_load[tid][d] += 1
                if tid in seen:
                    conflicts += 1
                    violations.append(f"Choque docente {tid} en día {d} periodo {p} ({class_name})")
                else:
                    seen.add(tid)
    comp["teacher_conflict"] = conflicts * weights.teacher_conflict

    # 2) Repeticiones, adyacencias y rachas por clase y día
    for class_name, grid in grids:
        labs = lab_subjects.get(class_name, frozenset())
        per_subject_days: DefaultDict[str, np.ndarray] = defaultdict(lambda: np.zeros(days, dtype=int))
        for d in range(days):
            row = grid[d]
            counts: DefaultDict[str, int] = defaultdict(int)
            for p, cell in enumerate(row):
                if not _is_confirmed(cell):
                    continue
                per_subject_days[cell.subject_name][d] += 1
                if not cell.teacher_id:
                    comp["empty_teacher"] += weights.empty_teacher
                if cell.subject_name in labs:
                    continue
                counts[cell.subject_name] += 1
            for subject, c in counts.items():
                if c > 2:
                    comp["daily_repeat_over_2"] += (c - 2) * weights.daily_repeat_over_2
                    violations.append(f"{class_name}: {subject} aparece {c} veces el día {d}")

            streak = 1
            for p in range(1, len(row)):
                a, b = row[p - 1], row[p]
                same = (
                    _is_confirmed(a) and _is_confirmed(b)
                    and a.subject_name == b.subject_name
                    and a.subject_name not in labs
                )
                if same:
                    comp["adjacent_same_subject"] += weights.adjacent_same_subject
                    streak += 1
                    if streak > 2:
                        comp["long_streak_beyond_2"] += (streak - 2) * weights.long_streak_beyond_2
                else:
                    streak = 1

        for subject, counts_by_day in per_subject_days.items():
            comp["subject_day_variance"] += variance(counts_by_day) * weights.subject_day_variance

    # 3) Carga docente vs. horas objetivo y reparto diario
    for tid in set(targets) | set(usage):
        used = usage.get(tid, 0)
        target = targets.get(tid, 0)
        over = used - target
        if over > 0:
            comp["teacher_overflow"] += over * weights.teacher_overflow
            violations.append(f"Docente {tid} excede su carga en {over} periodos")
        comp["teacher_under_over_use"] += abs(target - used) * weights.teacher_under_over_use
    for tid, load in day_load.items():
        comp["teacher_day_variance"] += variance(load) * weights.teacher_day_variance

    penalty = float(sum(comp.values()))
    return EvaluationResult(
        penalty=penalty,
        teacher_conflicts=conflicts,
        components=dict(comp),
        teacher_usage=dict(usage),
        violations=violations,
    )


def audit_timetables(
    timetables: Solution,
    break_slots: Sequence[int] = (),
    lab_subjects: Optional[Mapping[str, FrozenSet[str]]] = None,
    check_theory_cap: bool = True,
) -> List[str]:
    """
    Verifica las propiedades estructurales de un resultado final: grilla
    completa, recreos intactos, laboratorios en bloques de 3, sin docentes
    duplicados y (opcional) el tope diario de teoría.
    """
    lab_subjects = lab_subjects or {}
    problems: List[str] = []
    occupied: DefaultDict[tuple, List[str]] = defaultdict(list)

    for class_name, grid in timetables.items():
        labs = lab_subjects.get(class_name, frozenset())
        for d, row in enumerate(grid):
            for p, cell in enumerate(row):
                if cell is None or cell.status not in VALID_STATUSES:
                    problems.append(f"{class_name}: celda inválida en día {d} periodo {p}")
                    continue
                if p in break_slots and cell.status != BREAK:
                    problems.append(f"{class_name}: recreo sobrescrito en día {d} periodo {p}")
                if cell.status == CONFIRMED and cell.teacher_id:
                    occupied[(d, p, cell.teacher_id)].append(class_name)

            p = 0
            while p < len(row):
                cell = row[p]
                if _is_confirmed(cell) and cell.subject_name in labs:
                    run = p
                    while run < len(row) and _is_confirmed(row[run]) and row[run].subject_name == cell.subject_name:
                        run += 1
                    length = run - p
                    if length % LAB_LENGTH != 0:
                        problems.append(f"{class_name}: laboratorio {cell.subject_name} de {length} periodos el día {d}")
                    for start in range(p, run, LAB_LENGTH):
                        block = row[start:start + LAB_LENGTH]
                        if len({c.teacher_id for c in block}) > 1:
                            problems.append(f"{class_name}: laboratorio {cell.subject_name} con docentes distintos el día {d}")
                    p = run
                else:
                    p += 1

            if check_theory_cap:
                positions: DefaultDict[str, List[int]] = defaultdict(list)
                for p, cell in enumerate(row):
                    if _is_confirmed(cell) and cell.subject_name not in labs:
                        positions[cell.subject_name].append(p)
                for subject, idxs in positions.items():
                    if len(idxs) > 2 or (len(idxs) == 2 and idxs[1] - idxs[0] != 1):
                        problems.append(f"{class_name}: {subject} viola el tope diario el día {d} ({idxs})")

    for (d, p, tid), names in occupied.items():
        if len(names) > 1:
            problems.append(f"Docente {tid} duplicado en día {d} periodo {p}: {', '.join(names)}")
    return problems
