import random
import unittest
from collections import Counter

from timetabling.config import GAConfig, ScheduleSettings
from timetabling.evaluation import audit_timetables
from timetabling.ga import GeneticSolver
from timetabling.generator import generate, generate_genetic
from timetabling.grid import confirmed_slot, create_base_grid, free_slot
from timetabling.initial_population import build_subject_pool, initialize_chromosome, round_half_up
from timetabling.model import (
    ClassUnit,
    SubjectDefinition,
    Teacher,
    BREAK,
    CONFIRMED,
    ELECTIVE_COURSE,
    FREE,
    LAB,
)
from timetabling.operators import crossover, mutate, repair_teacher_conflicts, tournament_select

FAST = {"populationSize": 10, "generations": 10}


def subject(name, credits, teachers):
    return SubjectDefinition(name=name, credits=credits, teachers=tuple(teachers))


class FixedIndices(random.Random):
    """randrange devuelve una secuencia fija de índices."""

    def __init__(self, indices):
        super().__init__(0)
        self._indices = list(indices)

    def randrange(self, *args, **kwargs):
        return self._indices.pop(0)


class InitialPopulationTests(unittest.TestCase):
    def test_round_half_up(self):
        self.assertEqual([round_half_up(v) for v in (0.5, 1.5, 2.4, 2.5)], [1, 2, 2, 3])

    def test_pool_split_by_free_percent_and_credits(self):
        cls = ClassUnit("C1", subjects=(
            subject("A", 3, ["T1"]),
            subject("B", 1, ["T2"]),
            SubjectDefinition(name="OE", credits=2, course_type=ELECTIVE_COURSE),
        ))
        sessions, pool = build_subject_pool(cls, 20, 20, random.Random(0))
        self.assertEqual(sessions, [])
        counts = Counter(s.name if s else None for s in pool)
        self.assertEqual(len(pool), 20)
        self.assertEqual(counts[None], 4)
        self.assertEqual(counts["A"], 12)
        self.assertEqual(counts["B"], 4)
        self.assertNotIn("OE", counts)

    def test_lab_share_becomes_whole_sessions(self):
        chem = SubjectDefinition(name="Chem Lab", credits=3, teachers=("T3",), delivery=LAB)
        cls = ClassUnit("C1", subjects=(chem, subject("B", 1, ["T2"])))
        sessions, pool = build_subject_pool(cls, 20, 20, random.Random(0), frozenset({"Chem Lab"}))
        # 16 celdas útiles: 12 de laboratorio en 4 sesiones y 4 de teoría
        self.assertEqual(len(sessions), 4)
        self.assertEqual(len(pool), 8)
        self.assertEqual(Counter(s.name if s else None for s in pool), Counter({"B": 4, None: 4}))

    def test_chromosome_keeps_breaks_and_teacher_hours(self):
        classes = [
            ClassUnit("C1", subjects=(subject("A", 2, ["T1"]), subject("B", 2, ["T2"]))),
            ClassUnit("C2", subjects=(subject("A", 1, ["T1"]),)),
        ]
        teachers = [Teacher("T1", 6), Teacher("T2", 3)]
        settings = ScheduleSettings(working_days=5, hours_per_day=5, break_slots=[2], free_period_percentage=10)
        chromosome = initialize_chromosome(classes, teachers, settings, random.Random(1))

        usage = Counter()
        for grid in chromosome.values():
            for row in grid:
                self.assertEqual(row[2].status, BREAK)
                for cell in row:
                    self.assertIsNotNone(cell)
                    if cell.status == CONFIRMED and cell.teacher_id:
                        usage[cell.teacher_id] += 1
        self.assertLessEqual(usage["T1"], 6)
        self.assertLessEqual(usage["T2"], 3)


class OperatorTests(unittest.TestCase):
    def setUp(self):
        self.a = {"C1": [[confirmed_slot("A", "C1", "T1"), free_slot()]]}
        self.b = {"C1": [[free_slot(), confirmed_slot("B", "C1", "T2")]]}

    def test_tournament_keeps_best_of_k(self):
        population = ["p0", "p1", "p2"]
        scores = [-5.0, -1.0, -3.0]
        self.assertEqual(tournament_select(population, scores, FixedIndices([0, 2, 1]), k=3), "p1")
        self.assertEqual(tournament_select(population, scores, FixedIndices([2, 0]), k=2), "p2")

    def test_crossover_copies_whole_grids(self):
        child = crossover(self.a, self.b, ["C1"], random.Random(3))
        self.assertIn(child["C1"], (self.a["C1"], self.b["C1"]))
        self.assertIsNot(child["C1"], self.a["C1"])
        self.assertIsNot(child["C1"], self.b["C1"])
        child["C1"][0][0] = free_slot()
        self.assertEqual(self.a["C1"][0][0].subject_name, "A")

    def test_mutation_preserves_breaks_and_input(self):
        grid = create_base_grid(3, 4, [1])
        for d in range(3):
            for p in (0, 2, 3):
                grid[d][p] = confirmed_slot(f"S{p}", "C1", "T1")
        original = {"C1": grid}
        snapshot = [list(r) for r in grid]
        rng = random.Random(11)
        for _ in range(50):
            mutated = mutate(original, {"C1": {"S0": ("T1", "T2")}}, [1], 0.8, rng, {"T1", "T2"})
            self.assertTrue(all(row[1].status == BREAK for row in mutated["C1"]))
            self.assertEqual(
                sorted(c.subject_name for row in mutated["C1"] for c in row),
                sorted(c.subject_name for row in snapshot for c in row),
            )
        self.assertEqual(original["C1"], snapshot)

    def test_repair_reassigns_then_clears(self):
        chromosome = {
            "C1": [[confirmed_slot("A", "C1", "T1")]],
            "C2": [[confirmed_slot("A", "C2", "T1")]],
            "C3": [[confirmed_slot("A", "C3", "T1")]],
        }
        subject_teachers = {name: {"A": ("T1", "T2")} for name in chromosome}
        repaired = repair_teacher_conflicts(chromosome, subject_teachers, {"T1", "T2"}, random.Random(0))
        self.assertEqual(
            [repaired[n][0][0].teacher_id for n in ("C1", "C2", "C3")],
            ["T1", "T2", ""],
        )

    def test_repair_replaces_teacher_without_load(self):
        chromosome = {"C1": [[confirmed_slot("A", "C1", "T0")]]}
        repaired = repair_teacher_conflicts(chromosome, {"C1": {"A": ("T0", "T1")}}, {"T1"}, random.Random(0))
        self.assertEqual(repaired["C1"][0][0].teacher_id, "T1")

    def test_repair_moves_whole_lab_block(self):
        def lab_row(class_name, tid):
            block = [confirmed_slot("Lab", class_name, tid)] * 3
            return [block + [free_slot()]]

        chromosome = {"C1": lab_row("C1", "T3"), "C2": lab_row("C2", "T3"), "C3": lab_row("C3", "T3")}
        labs = {name: frozenset({"Lab"}) for name in chromosome}
        subject_teachers = {name: {"Lab": ("T3", "T4")} for name in chromosome}
        repaired = repair_teacher_conflicts(chromosome, subject_teachers, {"T3", "T4"}, random.Random(0), labs)
        self.assertEqual([c.teacher_id for c in repaired["C2"][0][:3]], ["T4"] * 3)
        self.assertEqual([c.teacher_id for c in repaired["C3"][0][:3]], [""] * 3)
        self.assertEqual(audit_timetables(repaired, lab_subjects=labs), [])

    def test_mutation_moves_lab_blocks_as_a_unit(self):
        grid = create_base_grid(2, 7, [3])
        lab_slot = confirmed_slot("Lab", "C1", "T3")
        for p in range(3):
            grid[0][p] = lab_slot
        grid[0][4] = confirmed_slot("A", "C1", "T1")
        grid[0][5] = confirmed_slot("A", "C1", "T1")
        grid[1][0] = confirmed_slot("B", "C1", "T2")
        chromosome = {"C1": [[c if c is not None else free_slot() for c in row] for row in grid]}
        labs = {"C1": frozenset({"Lab"})}
        rng = random.Random(4)
        moved = False
        for _ in range(60):
            chromosome = mutate(chromosome, {"C1": {"Lab": ("T3", "T4")}}, [3], 0.8, rng, {"T3", "T4"}, labs)
            self.assertEqual(audit_timetables(chromosome, [3], labs), [])
            lab_cells = [(d, p) for d, row in enumerate(chromosome["C1"]) for p, c in enumerate(row)
                         if c.subject_name == "Lab"]
            self.assertEqual(len(lab_cells), 3)
            moved = moved or lab_cells != [(0, 0), (0, 1), (0, 2)]
        self.assertTrue(moved)


class GeneticSolverTests(unittest.TestCase):
    def setUp(self):
        self.classes = [
            ClassUnit("C1", subjects=(subject("Maths", 3, ["T1", "T2"]), subject("Physics", 2, ["T2"]))),
            ClassUnit("C2", subjects=(subject("Maths", 3, ["T1"]), subject("Biology", 2, ["T3"]))),
        ]
        self.teachers = [Teacher("T1", 12), Teacher("T2", 12), Teacher("T3", 8)]
        self.result = generate_genetic(
            self.classes, self.teachers, working_days=5, hours_per_day=6, break_slots=[3],
            free_period_percentage=20, options=FAST, rng=random.Random(8),
        )

    def test_structural_properties_hold(self):
        self.assertEqual(audit_timetables(self.result.timetables, [3]), [])
        for name, grid in self.result.timetables.items():
            self.assertEqual((len(grid), len(grid[0])), (5, 6))
            for row in grid:
                for cell in row:
                    if cell.status == CONFIRMED:
                        self.assertEqual(cell.class_name, name)

    def test_hours_left_match_confirmed_usage(self):
        usage = Counter(
            c.teacher_id
            for grid in self.result.timetables.values()
            for row in grid for c in row
            if c.status == CONFIRMED and c.teacher_id
        )
        for t in self.teachers:
            self.assertEqual(self.result.teacher_hours_left[t.id], max(0, t.weekly_required_hours - usage[t.id]))

    def test_history_has_one_entry_per_generation(self):
        self.assertEqual([h["generation"] for h in self.result.history], list(range(10)))
        bests = [h["best_penalty"] for h in self.result.history]
        self.assertEqual(bests, sorted(bests, reverse=True))

    def test_common_interface(self):
        result = generate(
            "ga", classes=self.classes, teachers=self.teachers, options=FAST, rng=random.Random(8),
        )
        self.assertEqual(set(result.timetables), {"C1", "C2"})


class GeneticLabTests(unittest.TestCase):
    def test_labs_stay_in_three_period_blocks(self):
        chem = SubjectDefinition(name="Chem Lab", credits=2, teachers=("T3",), delivery=LAB)
        classes = [
            ClassUnit("C1", subjects=(subject("Maths", 3, ["T1", "T2"]), subject("Physics", 2, ["T2"]), chem)),
            ClassUnit("C2", subjects=(subject("Maths", 3, ["T1"]), chem)),
        ]
        teachers = [Teacher("T1", 20), Teacher("T2", 20), Teacher("T3", 20)]
        result = generate_genetic(classes, teachers, working_days=5, hours_per_day=7, break_slots=[3],
                                  options=FAST, rng=random.Random(12))
        labs = {"C1": frozenset({"Chem Lab"}), "C2": frozenset({"Chem Lab"})}
        self.assertEqual(audit_timetables(result.timetables, [3], labs), [])
        c1_lab = [c for row in result.timetables["C1"] for c in row if c.subject_name == "Chem Lab"]
        self.assertEqual(len(c1_lab) % 3, 0)
        self.assertGreater(len(c1_lab), 0)


class GeneticScenarioTests(unittest.TestCase):
    def test_single_teacher_is_never_double_booked(self):
        classes = [
            ClassUnit("C1", subjects=(subject("Maths", 1, ["T1"]),)),
            ClassUnit("C2", subjects=(subject("Maths", 1, ["T1"]),)),
        ]
        result = generate_genetic(classes, [Teacher("T1", 40)], working_days=2, hours_per_day=2,
                                  free_period_percentage=0, options=FAST, rng=random.Random(5))
        for d in range(2):
            for p in range(2):
                owners = [n for n, g in result.timetables.items()
                          if g[d][p].status == CONFIRMED and g[d][p].teacher_id == "T1"]
                self.assertLessEqual(len(owners), 1)

    def test_zero_hour_teacher_never_assigned(self):
        cls = ClassUnit("C1", subjects=(subject("A", 2, ["T0", "T1"]), subject("B", 1, ["T0"])))
        result = generate_genetic([cls], [Teacher("T0", 0), Teacher("T1", 12)],
                                  options=FAST, rng=random.Random(6))
        teachers = {c.teacher_id for row in result.timetables["C1"] for c in row if c.status == CONFIRMED}
        self.assertNotIn("T0", teachers)
        self.assertEqual(result.teacher_hours_left["T0"], 0)

    def test_stagnation_stops_early(self):
        cls = ClassUnit("C1")
        cfg = GAConfig(population_size=10, generations=50, max_stagnation=2)
        solver = GeneticSolver([cls], [], ScheduleSettings(), cfg, rng=random.Random(0))
        best, score = solver.evolve(solver.initial_population())
        self.assertEqual(len(solver.history), 3)
        self.assertEqual(score, 0.0)
        self.assertTrue(all(c.status == FREE for row in best["C1"] for c in row))


if __name__ == "__main__":
    unittest.main()
