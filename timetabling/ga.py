import logging
import random
from typing import Dict, Iterable, List, Optional, Tuple

from .config import GAConfig, ScheduleSettings
from .domains import class_lab_subjects
from .evaluation import evaluate_solution
from .grid import clone_solution, create_base_grid
from .initial_population import build_initial_population
from .model import ClassUnit, ScheduleResult, Solution, Teacher
from .normalize import compute_teacher_hours_left, compute_teacher_usage, normalize_grid
from .operators import crossover, mutate, repair_teacher_conflicts, tournament_select

logger = logging.getLogger(__name__)


class GeneticSolver:
    def __init__(
        self,
        classes: Iterable[ClassUnit],
        teachers: Iterable[Teacher],
        settings: ScheduleSettings,
        cfg: GAConfig,
        rng: Optional[random.Random] = None,
    ):
        self.classes = list(classes)
        self.teachers = list(teachers)
        self.settings = settings
        self.cfg = cfg
        self.rng = rng or random.Random(cfg.seed)
        self.class_names = [cls.name for cls in self.classes]
        self.subject_teachers = {
            cls.name: {s.name: tuple(s.teachers) for s in cls.subjects} for cls in self.classes
        }
        self.staffable = {t.id for t in self.teachers if int(t.weekly_required_hours or 0) > 0}
        # Sin catálogo de cursos: laboratorio = modalidad lab de la materia
        self.lab_subjects = class_lab_subjects(self.classes)
        self.history: List[Dict] = []

    def fitness(self, chromosome: Solution) -> float:
        return evaluate_solution(chromosome, self.teachers, self.cfg.weights, self.lab_subjects).score

    def repair(self, chromosome: Solution) -> Solution:
        return repair_teacher_conflicts(
            chromosome, self.subject_teachers, self.staffable, self.rng, self.lab_subjects
        )

    def initial_population(self) -> List[Solution]:
        population = build_initial_population(
            self.classes, self.teachers, self.settings, self.cfg.population_size, self.rng, self.lab_subjects
        )
        return [self.repair(ch) for ch in population]

    def evolve(
        self,
        population: List[Solution],
        generations: Optional[int] = None,
        mutation_rate: Optional[float] = None,
    ) -> Tuple[Solution, float]:
        generations = generations if generations is not None else self.cfg.generations
        mutation_rate = mutation_rate if mutation_rate is not None else self.cfg.mutation_rate
        size = len(population)

        best_penalty = float("inf")
        stagnation = 0
        for gen in range(generations):
            scores = [self.fitness(ch) for ch in population]
            ranked = sorted(range(size), key=lambda i: scores[i], reverse=True)

            gen_best = -scores[ranked[0]]
            if gen_best < best_penalty:
                best_penalty = gen_best
                stagnation = 0
            else:
                stagnation += 1
            avg_pen = -sum(scores) / size
            self.history.append({"generation": gen, "best_penalty": best_penalty, "avg_penalty": avg_pen})

            if gen % 10 == 0 or gen == generations - 1:
                logger.info("Gen %d: Mejor Penalty=%.2f Avg=%.2f", gen, best_penalty, avg_pen)
            if self.cfg.max_stagnation and stagnation >= self.cfg.max_stagnation:
                logger.info("Sin mejora en %d generaciones; se detiene en la %d", stagnation, gen)
                break

            # Elitismo
            new_pop = [clone_solution(population[i]) for i in ranked[: min(self.cfg.elitism, size)]]
            while len(new_pop) < size:
                p1 = tournament_select(population, scores, self.rng, self.cfg.tournament_size)
                p2 = tournament_select(population, scores, self.rng, self.cfg.tournament_size)
                child = crossover(p1, p2, self.class_names, self.rng)
                child = mutate(
                    child,
                    self.subject_teachers,
                    self.settings.break_slots,
                    mutation_rate,
                    self.rng,
                    self.staffable,
                    self.lab_subjects,
                )
                new_pop.append(self.repair(child))
            # Barrera: la población se reemplaza completa
            population = new_pop

        final_scores = [self.fitness(ch) for ch in population]
        best_idx = max(range(len(population)), key=lambda i: final_scores[i])
        return population[best_idx], final_scores[best_idx]

    def run(self) -> ScheduleResult:
        population = self.initial_population()
        best, score = self.evolve(population)
        return self.finalize(best, score)

    def finalize(self, best: Solution, score: float) -> ScheduleResult:
        timetables: Solution = {}
        for cls in self.classes:
            grid = best.get(cls.name) or create_base_grid(
                self.settings.days, self.settings.hours, self.settings.break_slots
            )
            timetables[cls.name] = normalize_grid(grid, cls.name)
        usage = compute_teacher_usage(timetables)
        return ScheduleResult(
            timetables=timetables,
            teacher_hours_left=compute_teacher_hours_left(self.teachers, usage),
            score=score,
            history=self.history,
        )
