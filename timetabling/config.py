"""
Configuración del generador de horarios.

Agrupa los ajustes de la grilla (días, periodos, recreos, electivos), los
parámetros de cada metaheurística (ACO y AG) y los pesos de penalización.
Incluye un cargador desde YAML (o JSON) para dejar las corridas
reproducibles. Los valores fuera de rango se recortan, nunca se rechazan.
"""
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import math

import yaml

from .exceptions import ConfigurationError


DEFAULT_WORKING_DAYS = 5
DEFAULT_HOURS_PER_DAY = 5

# Nombres camelCase que envía la capa externa -> atributos
OPTION_ALIASES: Dict[str, str] = {
    "workingDays": "working_days",
    "hoursPerDay": "hours_per_day",
    "breakSlots": "break_slots",
    "electivePeriodIndices": "elective_period_indices",
    "freePeriodPercentage": "free_period_percentage",
    "populationSize": "population_size",
    "mutationRate": "mutation_rate",
    "tournamentSize": "tournament_size",
    "maxStagnation": "max_stagnation",
}


def clamp(value, low, high):
    return max(low, min(high, value))


def _as_number(value: Any) -> Optional[float]:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(num) or math.isinf(num):
        return None
    return num


def _truthy_number(value: Any, default: float) -> float:
    # 0, None o texto no numérico -> valor por defecto
    num = _as_number(value)
    return num if num else default


def _number_or_default(value: Any, default: float) -> float:
    num = _as_number(value)
    return default if num is None else num


def _int_indices(values) -> List[int]:
    out = []
    for v in values or []:
        num = _as_number(v)
        if num is not None:
            out.append(int(num))
    return out


def _rename_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    return {OPTION_ALIASES.get(k, k): v for k, v in (data or {}).items()}


def _merge_known(cls, data: Dict[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(cls)}
    return {k: v for k, v in _rename_keys(data).items() if k in known}


@dataclass
class ScheduleSettings:
    working_days: int = DEFAULT_WORKING_DAYS
    hours_per_day: int = DEFAULT_HOURS_PER_DAY
    break_slots: List[int] = field(default_factory=list)
    elective_period_indices: List[int] = field(default_factory=list)
    free_period_percentage: float = 20.0

    def __post_init__(self):
        self.working_days = int(clamp(_truthy_number(self.working_days, DEFAULT_WORKING_DAYS), 1, 7))
        self.hours_per_day = int(clamp(_truthy_number(self.hours_per_day, DEFAULT_HOURS_PER_DAY), 1, 12))
        # Recreos fuera del día se ignoran; duplicados también
        self.break_slots = sorted({p for p in _int_indices(self.break_slots) if 0 <= p < self.hours_per_day})
        self.elective_period_indices = _int_indices(self.elective_period_indices)
        self.free_period_percentage = clamp(_number_or_default(self.free_period_percentage, 20.0), 0.0, 100.0)

    @property
    def days(self) -> int:
        return self.working_days

    @property
    def hours(self) -> int:
        return self.hours_per_day

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduleSettings":
        return cls(**_merge_known(cls, data))


@dataclass
class PenaltyWeights:
    teacher_conflict: float = 6.0
    daily_repeat_over_2: float = 2.0
    adjacent_same_subject: float = 3.0
    long_streak_beyond_2: float = 1.0
    empty_teacher: float = 1.0
    subject_day_variance: float = 1.5
    teacher_day_variance: float = 2.0
    teacher_overflow: float = 4.0
    teacher_under_over_use: float = 0.5

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base: Optional["PenaltyWeights"] = None) -> "PenaltyWeights":
        merged = asdict(base or cls())
        for k, v in (data or {}).items():
            if k in merged:
                merged[k] = float(v)
        return cls(**merged)


def aco_weights() -> PenaltyWeights:
    # La colonia ya respeta la regla diaria al construir; los pares adyacentes no se castigan
    return PenaltyWeights(
        teacher_conflict=10.0,
        daily_repeat_over_2=2.0,
        adjacent_same_subject=0.0,
        long_streak_beyond_2=2.0,
        empty_teacher=0.5,
        subject_day_variance=1.0,
        teacher_day_variance=1.0,
        teacher_overflow=4.0,
        teacher_under_over_use=0.5,
    )


def ga_weights() -> PenaltyWeights:
    return PenaltyWeights()


@dataclass
class ACOConfig:
    ants: int = 40
    iterations: int = 80
    evaporation: float = 0.5
    alpha: float = 1.0
    beta: float = 3.0
    reward: float = 1.0
    seed: Optional[int] = None
    weights: PenaltyWeights = field(default_factory=aco_weights)

    def __post_init__(self):
        self.ants = int(clamp(_truthy_number(self.ants, 40), 10, 200))
        self.iterations = int(clamp(_truthy_number(self.iterations, 80), 10, 400))
        self.evaporation = clamp(_number_or_default(self.evaporation, 0.5), 0.0, 1.0)
        self.alpha = max(0.0, _number_or_default(self.alpha, 1.0))
        self.beta = max(0.0, _number_or_default(self.beta, 3.0))
        self.reward = max(0.0, _number_or_default(self.reward, 1.0))
        if isinstance(self.weights, dict):
            self.weights = PenaltyWeights.from_dict(self.weights, base=aco_weights())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ACOConfig":
        return cls(**_merge_known(cls, data))


@dataclass
class GAConfig:
    population_size: int = 40
    generations: int = 80
    mutation_rate: float = 0.15
    elitism: int = 2
    tournament_size: int = 3
    max_stagnation: Optional[int] = None
    seed: Optional[int] = None
    weights: PenaltyWeights = field(default_factory=ga_weights)

    def __post_init__(self):
        self.population_size = int(clamp(_truthy_number(self.population_size, 40), 10, 200))
        self.generations = int(clamp(_truthy_number(self.generations, 80), 10, 500))
        self.mutation_rate = clamp(_truthy_number(self.mutation_rate, 0.15), 0.01, 0.8)
        self.elitism = int(clamp(_number_or_default(self.elitism, 2), 0, 10))
        self.elitism = min(self.elitism, self.population_size)
        self.tournament_size = int(max(1, _truthy_number(self.tournament_size, 3)))
        if self.max_stagnation is not None:
            self.max_stagnation = int(max(1, _truthy_number(self.max_stagnation, 1)))
        if isinstance(self.weights, dict):
            self.weights = PenaltyWeights.from_dict(self.weights, base=ga_weights())

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GAConfig":
        return cls(**_merge_known(cls, data))


@dataclass
class AppConfig:
    seed: int = 42
    schedule: ScheduleSettings = field(default_factory=ScheduleSettings)
    aco: ACOConfig = field(default_factory=ACOConfig)
    ga: GAConfig = field(default_factory=GAConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        seed = int(data.get("seed", 42))
        aco = ACOConfig.from_dict(data.get("aco") or {})
        ga = GAConfig.from_dict(data.get("ga") or {})
        # La semilla global aplica a los solvers que no traen la suya
        if aco.seed is None:
            aco.seed = seed
        if ga.seed is None:
            ga.seed = seed
        return cls(
            seed=seed,
            schedule=ScheduleSettings.from_dict(data.get("schedule") or {}),
            aco=aco,
            ga=ga,
        )


def _load_yaml_or_json(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        return json.loads(text) if text.strip() else {}
    return yaml.safe_load(text) or {}


def load_config(path: str = "config.yaml") -> AppConfig:
    cfg_path = Path(path)
    data = _load_yaml_or_json(cfg_path)
    if not isinstance(data, dict):
        raise ConfigurationError(f"{cfg_path} debe contener un objeto mapeo")
    return AppConfig.from_dict(data)
