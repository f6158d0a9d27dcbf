import json
import tempfile
import unittest
from pathlib import Path

from timetabling.config import ACOConfig, AppConfig, GAConfig, ScheduleSettings, load_config
from timetabling.exceptions import ConfigurationError
from timetabling.generator import generate


class ClampTests(unittest.TestCase):
    def test_schedule_settings(self):
        s = ScheduleSettings(working_days=9, hours_per_day=20, break_slots=[2, 2, 15, "x"])
        self.assertEqual((s.days, s.hours), (7, 12))
        self.assertEqual(s.break_slots, [2])
        self.assertEqual(ScheduleSettings(working_days=0).days, 5)
        self.assertEqual(ScheduleSettings(working_days=-3, hours_per_day=None).days, 1)
        self.assertEqual(ScheduleSettings(hours_per_day=None).hours, 5)

    def test_aco_options(self):
        cfg = ACOConfig.from_dict({"ants": 5, "iterations": 1000, "evaporation": 2, "unknown": 1})
        self.assertEqual((cfg.ants, cfg.iterations, cfg.evaporation), (10, 400, 1.0))
        self.assertEqual((ACOConfig().ants, ACOConfig().iterations), (40, 80))

    def test_ga_options_accept_camel_case(self):
        cfg = GAConfig.from_dict({"populationSize": 500, "generations": 3, "mutationRate": 0.95, "elitism": 0})
        self.assertEqual(cfg.population_size, 200)
        self.assertEqual(cfg.generations, 10)
        self.assertEqual(cfg.mutation_rate, 0.8)
        self.assertEqual(cfg.elitism, 0)
        self.assertEqual(GAConfig(elitism=50).elitism, 10)

    def test_weights_override(self):
        cfg = GAConfig.from_dict({"weights": {"teacher_conflict": 9}})
        self.assertEqual(cfg.weights.teacher_conflict, 9)
        self.assertEqual(cfg.weights.subject_day_variance, 1.5)


class LoadConfigTests(unittest.TestCase):
    def test_missing_file_gives_defaults(self):
        cfg = load_config("/nonexistent/config.yaml")
        self.assertIsInstance(cfg, AppConfig)
        self.assertEqual(cfg.aco.seed, 42)

    def test_yaml_and_json(self):
        with tempfile.TemporaryDirectory() as tmp:
            yml = Path(tmp) / "config.yaml"
            yml.write_text("seed: 7\nschedule:\n  workingDays: 6\n  break_slots: [3]\nga:\n  seed: 1\n", encoding="utf-8")
            cfg = load_config(str(yml))
            self.assertEqual(cfg.schedule.working_days, 6)
            self.assertEqual(cfg.schedule.break_slots, [3])
            self.assertEqual((cfg.aco.seed, cfg.ga.seed), (7, 1))

            js = Path(tmp) / "config.json"
            js.write_text(json.dumps({"aco": {"ants": 12}}), encoding="utf-8")
            self.assertEqual(load_config(str(js)).aco.ants, 12)

    def test_non_mapping_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            yml = Path(tmp) / "config.yaml"
            yml.write_text("- 1\n- 2\n", encoding="utf-8")
            with self.assertRaises(ConfigurationError):
                load_config(str(yml))

    def test_unknown_strategy(self):
        with self.assertRaises(ConfigurationError):
            generate("tabu", classes=[], teachers=[])


if __name__ == "__main__":
    unittest.main()
