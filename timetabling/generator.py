# timetabling/generator.py
"""
Puntos de entrada del generador. Ambos solvers reciben el mismo modelo y
devuelven la misma estructura: una grilla día×periodo por clase y las horas
restantes de cada docente.
"""
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Union
import logging
import random
import time

from .aco import AntColonySolver
from .config import ACOConfig, GAConfig, ScheduleSettings
from .data_loader import parse_classes, parse_courses, parse_programs, parse_ratings, parse_teachers
from .domains import build_class_domains
from .exceptions import ConfigurationError
from .ga import GeneticSolver
from .model import ScheduleResult

logger = logging.getLogger(__name__)


def generate_aco(
    classes: Sequence[Any],
    teachers: Sequence[Any],
    working_days: int = 5,
    hours_per_day: int = 5,
    break_slots: Sequence[int] = (),
    elective_period_indices: Sequence[int] = (),
    programs: Any = None,
    courses: Any = None,
    course_ratings: Optional[Mapping[str, float]] = None,
    options: Union[ACOConfig, Mapping[str, Any], None] = None,
    rng: Optional[random.Random] = None,
) -> ScheduleResult:
    settings = ScheduleSettings(
        working_days=working_days,
        hours_per_day=hours_per_day,
        break_slots=list(break_slots or []),
        elective_period_indices=list(elective_period_indices or []),
    )
    cfg = options if isinstance(options, ACOConfig) else ACOConfig.from_dict(dict(options or {}))
    class_units = parse_classes(classes)
    teacher_list = parse_teachers(teachers)
    domains = build_class_domains(
        class_units,
        settings,
        programs=parse_programs(programs),
        courses=parse_courses(courses),
        course_ratings=parse_ratings(course_ratings),
    )

    start = time.perf_counter()
    solver = AntColonySolver(class_units, teacher_list, settings, cfg, domains, rng=rng)
    result = solver.run()
    logger.info(
        "ACO terminado: %d clases, penalty=%.2f, %d hormigas x %d iteraciones en %.2fs",
        len(class_units), -result.score, cfg.ants, cfg.iterations, time.perf_counter() - start,
    )
    return result


def generate_genetic(
    classes: Sequence[Any],
    teachers: Sequence[Any],
    working_days: int = 5,
    hours_per_day: int = 5,
    break_slots: Sequence[int] = (),
    free_period_percentage: float = 20,
    options: Union[GAConfig, Mapping[str, Any], None] = None,
    rng: Optional[random.Random] = None,
) -> ScheduleResult:
    settings = ScheduleSettings(
        working_days=working_days,
        hours_per_day=hours_per_day,
        break_slots=list(break_slots or []),
        free_period_percentage=free_period_percentage,
    )
    cfg = options if isinstance(options, GAConfig) else GAConfig.from_dict(dict(options or {}))
    class_units = parse_classes(classes)
    teacher_list = parse_teachers(teachers)

    start = time.perf_counter()
    solver = GeneticSolver(class_units, teacher_list, settings, cfg, rng=rng)
    result = solver.run()
    logger.info(
        "AG terminado: %d clases, penalty=%.2f, población %d x %d generaciones en %.2fs",
        len(class_units), -result.score, cfg.population_size, cfg.generations, time.perf_counter() - start,
    )
    return result


SOLVERS: Dict[str, Callable[..., ScheduleResult]] = {
    "aco": generate_aco,
    "ga": generate_genetic,
    "genetic": generate_genetic,
}


def generate(strategy: str, **kwargs) -> ScheduleResult:
    """Interfaz común: `strategy` es "aco" o "ga"."""
    try:
        solver = SOLVERS[strategy.lower()]
    except KeyError:
        raise ConfigurationError(f"Estrategia desconocida: {strategy!r}", {"known": sorted(SOLVERS)}) from None
    return solver(**kwargs)
