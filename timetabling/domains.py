# timetabling/domains.py
"""
Construcción del modelo de dominio: traduce las materias de cada clase y los
ajustes globales en una lista concreta de unidades de demanda.

Cada materia no electiva recibe periodos en proporción a sus créditos sobre
el mínimo de créditos del programa. Los laboratorios se asignan por sesiones
de 3 periodos seguidos. El reparto entero usa el método del resto mayor
(Hamilton) y la capacidad que sobra se sigue repartiendo en ronda. Nunca
se lanza error: las entradas inválidas degradan a una demanda vacía.
"""
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple
import math
import re

from .config import ScheduleSettings
from .grid import create_base_grid
from .model import (
    ClassUnit,
    Course,
    CourseMeta,
    DemandItem,
    Grid,
    Program,
    SubjectDefinition,
    LAB,
    LAB_LENGTH,
)

_ELECTIVE_CATEGORY = re.compile("elective", re.IGNORECASE)


@dataclass(frozen=True)
class ClassDomain:
    # Datos por clase precalculados una sola vez antes del bucle del solver
    class_name: str
    has_electives: bool
    elective_indices: Tuple[int, ...]
    elective_teachers: FrozenSet[str]
    min_credits: float
    lab_subjects: FrozenSet[str]
    subject_meta: Dict[str, CourseMeta]
    demand: Tuple[DemandItem, ...]
    base_grid: Grid


@dataclass
class _Allocation:
    name: str
    teachers: Tuple[str, ...]
    is_lab: bool
    base_units: int
    remainder: float
    extra_units: int = 0

    @property
    def cost(self) -> int:
        return LAB_LENGTH if self.is_lab else 1

    @property
    def units(self) -> int:
        return self.base_units + self.extra_units


def compute_min_credits_map(programs: Iterable[Program]) -> Dict[str, float]:
    return {p.program: float(p.min_total_credits or 0) for p in programs or [] if p.program}


def resolve_min_credits(
    cls: ClassUnit,
    min_credits_map: Mapping[str, float],
    courses: Iterable[Course],
) -> float:
    """Programa explícito -> suma del catálogo (programa+semestre) -> suma de la clase."""
    mapped = min_credits_map.get(cls.program, 0) if min_credits_map else 0
    if mapped > 0:
        return mapped
    if cls.semester > 0:
        total = sum(
            c.credits for c in courses or []
            if c.program == cls.program and c.semester == cls.semester
        )
        if total > 0:
            return total
    own = sum(s.credits for s in cls.subjects)
    return own if own > 0 else 0


def build_course_meta(
    courses: Iterable[Course],
    ratings: Optional[Mapping[str, float]] = None,
) -> Dict[str, CourseMeta]:
    meta: Dict[str, CourseMeta] = {}
    for c in courses or []:
        meta[c.name] = CourseMeta(is_lab=c.is_lab, style=c.style, rating=None)
    for name, rating in (ratings or {}).items():
        if name in meta:
            m = meta[name]
            meta[name] = CourseMeta(is_lab=m.is_lab, style=m.style, rating=float(rating))
    return meta


def is_lab_subject(subject: SubjectDefinition, course_meta: Mapping[str, CourseMeta]) -> bool:
    meta = course_meta.get(subject.name)
    return subject.delivery == LAB or bool(meta and meta.is_lab)


def class_lab_subjects(
    classes: Iterable[ClassUnit],
    course_meta: Optional[Mapping[str, CourseMeta]] = None,
) -> Dict[str, FrozenSet[str]]:
    """Materias de laboratorio por clase (modalidad lab o curso marcado en el catálogo)."""
    meta = course_meta or {}
    return {
        cls.name: frozenset(
            s.name for s in cls.subjects if not s.is_elective_group and is_lab_subject(s, meta)
        )
        for cls in classes
    }


def class_has_electives(cls: ClassUnit, courses: Iterable[Course]) -> bool:
    if any(s.is_elective_group for s in cls.subjects):
        return True
    if not cls.program or not cls.semester:
        return False
    return any(
        c.program == cls.program
        and c.semester == cls.semester
        and _ELECTIVE_CATEGORY.search(c.category or "")
        for c in courses or []
    )


def collect_elective_teachers(cls: ClassUnit) -> FrozenSet[str]:
    teachers = set()
    for s in cls.subjects:
        if not s.is_elective_group:
            continue
        for opt in s.elective_options:
            teachers.update(t for t in opt.teachers if t)
    return frozenset(teachers)


def apportion(allocations: List[_Allocation], capacity: int) -> None:
    """
    Reparte la capacidad sobrante recorriendo en ronda la lista ordenada por
    resto mayor: cada vuelta da una unidad a la siguiente materia que cabe
    (costo 3 de un laboratorio, 1 de teoría). Termina cuando una vuelta
    completa no encuentra ninguna que quepa.
    """
    used = sum(a.base_units * a.cost for a in allocations)
    available = max(0, capacity - used)
    by_remainder = sorted(allocations, key=lambda x: x.remainder, reverse=True)
    n = len(by_remainder)
    idx = 0
    while available > 0 and n:
        found = False
        for k in range(n):
            i = (idx + k) % n
            a = by_remainder[i]
            if a.remainder <= 0:
                continue
            if a.cost <= available:
                a.extra_units += 1
                available -= a.cost
                idx = (i + 1) % n
                found = True
                break
        if not found:
            break


def build_demand_for_class(
    cls: ClassUnit,
    days: int,
    hours: int,
    break_slots: List[int],
    elective_indices: List[int],
    min_credits: float,
    lab_subjects: FrozenSet[str] = frozenset(),
) -> List[DemandItem]:
    usable_per_day = hours - len(break_slots or []) - len(elective_indices or [])
    total_usable = days * max(0, usable_per_day)

    subjects = [s for s in cls.subjects if not s.is_elective_group]
    if not (min_credits > 0 and total_usable > 0) or not subjects:
        return []

    allocations: List[_Allocation] = []
    for s in subjects:
        is_lab = s.name in lab_subjects or s.delivery == LAB
        desired = (max(0.0, s.credits) / min_credits) * total_usable
        if is_lab:
            desired = desired / LAB_LENGTH
        base = int(math.floor(desired))
        allocations.append(
            _Allocation(name=s.name, teachers=tuple(s.teachers), is_lab=is_lab, base_units=base, remainder=desired - base)
        )

    apportion(allocations, total_usable)

    demand: List[DemandItem] = []
    for a in allocations:
        for _ in range(a.units):
            demand.append(DemandItem(subject_name=a.name, teachers=a.teachers, is_lab=a.is_lab))
    return demand


def build_class_domains(
    classes: Iterable[ClassUnit],
    settings: ScheduleSettings,
    programs: Iterable[Program] = (),
    courses: Iterable[Course] = (),
    course_ratings: Optional[Mapping[str, float]] = None,
) -> Dict[str, ClassDomain]:
    courses = list(courses or [])
    min_map = compute_min_credits_map(programs)
    course_meta = build_course_meta(courses, course_ratings)

    domains: Dict[str, ClassDomain] = {}
    for cls in classes:
        has_electives = class_has_electives(cls, courses)
        electives = list(settings.elective_period_indices) if has_electives else []
        labs = frozenset(s.name for s in cls.subjects if is_lab_subject(s, course_meta))
        subject_meta = {
            s.name: CourseMeta(
                is_lab=s.name in labs,
                style=course_meta.get(s.name, CourseMeta()).style,
                rating=course_meta.get(s.name, CourseMeta()).rating,
            )
            for s in cls.subjects
        }
        min_credits = resolve_min_credits(cls, min_map, courses)
        demand = build_demand_for_class(
            cls,
            settings.days,
            settings.hours,
            settings.break_slots,
            electives,
            min_credits,
            labs,
        )
        domains[cls.name] = ClassDomain(
            class_name=cls.name,
            has_electives=has_electives,
            elective_indices=tuple(electives),
            elective_teachers=collect_elective_teachers(cls),
            min_credits=min_credits,
            lab_subjects=labs,
            subject_meta=subject_meta,
            demand=tuple(demand),
            base_grid=create_base_grid(settings.days, settings.hours, settings.break_slots, electives),
        )
    return domains
