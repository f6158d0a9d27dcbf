# timetabling/aco.py
"""
Generador de horarios por Colonia de Hormigas (ACO).

Cada hormiga construye una solución completa: para cada clase toma su
demanda (laboratorios primero), elige celdas factibles por ruleta con peso
tau^alpha * eta^beta y las ocupa. Al final de cada iteración la feromona se
evapora y se refuerza con la mejor solución de la iteración.
"""
from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import random

import numpy as np

from .config import ACOConfig, ScheduleSettings
from .constraints import TeacherBusy, can_place, place, theory_day_ok
from .domains import ClassDomain
from .evaluation import EvaluationResult, evaluate_solution
from .grid import cells_with_status, clone_grid
from .model import ClassUnit, CourseMeta, DemandItem, Grid, ScheduleResult, Solution, Teacher, CONFIRMED, ELECTIVE, LAB_LENGTH
from .normalize import compute_teacher_hours_left, compute_teacher_usage, normalize_grid

logger = logging.getLogger(__name__)

EPS = 1e-6


class AntColonySolver:
    def __init__(
        self,
        classes: Iterable[ClassUnit],
        teachers: Iterable[Teacher],
        settings: ScheduleSettings,
        cfg: ACOConfig,
        domains: Dict[str, ClassDomain],
        rng: Optional[random.Random] = None,
    ):
        self.classes = list(classes)
        self.teachers = list(teachers)
        self.settings = settings
        self.cfg = cfg
        self.domains = domains
        self.rng = rng or random.Random(cfg.seed)
        # Docentes con carga objetivo > 0: los de 0 horas nunca se preasignan
        self.staffable = {t.id for t in self.teachers if int(t.weekly_required_hours or 0) > 0}
        self.lab_subjects = {name: dom.lab_subjects for name, dom in domains.items()}
        self.elective_teachers = {name: dom.elective_teachers for name, dom in domains.items()}
        self.history: List[Dict] = []
        self.subject_index: Dict[str, Dict[str, int]] = {}
        self.pheromone: Dict[str, np.ndarray] = self._init_pheromone()

    def _init_pheromone(self) -> Dict[str, np.ndarray]:
        tau = {}
        for cls in self.classes:
            names = list(dict.fromkeys(s.name for s in cls.subjects))
            self.subject_index[cls.name] = {n: i for i, n in enumerate(names)}
            tau[cls.name] = np.ones((len(names), self.settings.days, self.settings.hours))
        return tau

    def choose_teacher(self, item: DemandItem) -> DemandItem:
        candidates = [t for t in item.teachers if t in self.staffable]
        tid = self.rng.choice(candidates) if candidates else ""
        return replace(item, teacher_id=tid)

    def heuristic(self, grid: Grid, item: DemandItem, meta: CourseMeta, day: int, period: int) -> float:
        hours = self.settings.hours
        h = 1.0
        if not item.is_lab:
            if not theory_day_ok(grid, day, period, item.subject_name):
                h *= 0.2
        else:
            # Preferencia suave: laboratorios temprano en el día
            if period + LAB_LENGTH - 1 >= hours:
                h *= 0.01
            elif period > hours // 2:
                h *= 0.7
        if meta.rating is not None:
            h *= 1 + 0.05 * (3 - abs(3 - float(meta.rating)))
        return h + EPS

    def _roulette(self, candidates: List[Tuple[int, int, float]], total: float) -> Tuple[int, int]:
        r = self.rng.random() * total
        chosen = candidates[-1]
        for cand in candidates:
            r -= cand[2]
            if r <= 0:
                chosen = cand
                break
        return chosen[0], chosen[1]

    def construct_class(self, cls: ClassUnit, busy: TeacherBusy) -> Grid:
        dom = self.domains[cls.name]
        grid = clone_grid(dom.base_grid)

        # Los docentes de grupos electivos quedan bloqueados en los periodos electivos
        if dom.elective_teachers:
            for d, p in cells_with_status(grid, ELECTIVE):
                busy.block(dom.elective_teachers, d, p)

        items = [self.choose_teacher(item) for item in dom.demand]
        items.sort(key=lambda it: not it.is_lab)

        tau = self.pheromone[cls.name]
        index = self.subject_index[cls.name]
        alpha, beta = self.cfg.alpha, self.cfg.beta
        for item in items:
            meta = dom.subject_meta.get(item.subject_name, CourseMeta())
            row = index.get(item.subject_name)
            candidates: List[Tuple[int, int, float]] = []
            total = 0.0
            for d in range(self.settings.days):
                for p in range(self.settings.hours):
                    if grid[d][p] is not None:
                        continue
                    if not can_place(grid, d, p, item, busy):
                        continue
                    pher = float(tau[row, d, p]) if row is not None else 1.0
                    w = (pher ** alpha) * (self.heuristic(grid, item, meta, d, p) ** beta)
                    if w <= 0:
                        continue
                    candidates.append((d, p, w))
                    total += w
            if not candidates:
                logger.debug("Sin celda factible para %s en %s; queda libre", item.subject_name, cls.name)
                continue
            d, p = self._roulette(candidates, total)
            place(grid, d, p, item, cls.name, busy)

        return normalize_grid(grid, cls.name)

    def construct_solution(self) -> Solution:
        busy = TeacherBusy()
        return {cls.name: self.construct_class(cls, busy) for cls in self.classes}

    def evaluate(self, solution: Solution) -> EvaluationResult:
        return evaluate_solution(solution, self.teachers, self.cfg.weights, self.lab_subjects)

    def update_pheromone(self, reinforce: Optional[Solution]) -> None:
        for name in self.pheromone:
            self.pheromone[name] = (1 - self.cfg.evaporation) * self.pheromone[name] + EPS
        if not reinforce:
            return
        for name, grid in reinforce.items():
            index = self.subject_index.get(name, {})
            tau = self.pheromone.get(name)
            if tau is None:
                continue
            for d, p in cells_with_status(grid, CONFIRMED):
                row = index.get(grid[d][p].subject_name)
                if row is not None:
                    tau[row, d, p] += self.cfg.reward

    def run(self) -> ScheduleResult:
        global_best: Optional[Solution] = None
        global_score = float("-inf")

        for it in range(self.cfg.iterations):
            iter_best: Optional[Solution] = None
            iter_score = float("-inf")
            penalties = []
            for _ in range(self.cfg.ants):
                solution = self.construct_solution()
                score = self.evaluate(solution).score
                penalties.append(-score)
                if score > iter_score:
                    iter_best, iter_score = solution, score
                if score > global_score:
                    global_best, global_score = solution, score

            # Barrera: la feromona solo cambia cuando todas las hormigas terminaron
            self.update_pheromone(iter_best or global_best)

            avg_pen = sum(penalties) / len(penalties)
            self.history.append({
                "iteration": it,
                "best_penalty": -global_score,
                "iteration_best_penalty": -iter_score,
                "avg_penalty": avg_pen,
            })
            if it % 10 == 0 or it == self.cfg.iterations - 1:
                logger.info("Iter %d: Mejor Penalty=%.2f Avg=%.2f", it, -global_score, avg_pen)

        return self.finalize(global_best or {}, global_score)

    def finalize(self, best: Solution, score: float) -> ScheduleResult:
        usage = compute_teacher_usage(best, self.elective_teachers)
        hours_left = compute_teacher_hours_left(self.teachers, usage)
        return ScheduleResult(
            timetables=best,
            teacher_hours_left=hours_left,
            score=score if best else 0.0,
            history=self.history,
        )
