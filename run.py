import argparse
import logging
import time
from pathlib import Path

import pandas as pd

from timetabling.config import AppConfig, load_config
from timetabling.data_loader import DataBundle, load_data
from timetabling.domains import build_class_domains, class_lab_subjects
from timetabling.encoding import teacher_hours_to_dataframe, timetables_to_dataframe
from timetabling.evaluation import audit_timetables
from timetabling.generator import generate_aco, generate_genetic
from timetabling.model import ScheduleResult


def run_solver(solver: str, bundle: DataBundle, cfg: AppConfig) -> ScheduleResult:
    # Cada solver usa la semilla de su sección (o la global)
    sched = cfg.schedule
    if solver == "aco":
        return generate_aco(
            bundle.classes,
            bundle.teachers,
            working_days=sched.working_days,
            hours_per_day=sched.hours_per_day,
            break_slots=sched.break_slots,
            elective_period_indices=sched.elective_period_indices,
            programs=bundle.programs,
            courses=bundle.courses,
            course_ratings=bundle.course_ratings,
            options=cfg.aco,
        )
    return generate_genetic(
        bundle.classes,
        bundle.teachers,
        working_days=sched.working_days,
        hours_per_day=sched.hours_per_day,
        break_slots=sched.break_slots,
        free_period_percentage=sched.free_period_percentage,
        options=cfg.ga,
    )


def export_outputs(result: ScheduleResult, metrics: dict, out_dir: Path):
    out_dir.mkdir(parents=True, exist_ok=True)
    timetables_to_dataframe(result.timetables).to_csv(out_dir / "schedule.csv", index=False)
    teacher_hours_to_dataframe(result.teacher_hours_left).to_csv(out_dir / "teacher_hours.csv", index=False)
    if result.history:
        pd.DataFrame(result.history).to_csv(out_dir / "history.csv", index=False)
    pd.DataFrame([metrics]).to_csv(out_dir / "metrics.csv", index=False)


def main():
    parser = argparse.ArgumentParser(description="Generación de horarios por ACO o algoritmo genético")
    parser.add_argument("--config", default="config.yaml", help="Ruta al archivo de configuración")
    parser.add_argument("--data_dir", default="data", help="Directorio con classes.json y los CSV de entrada")
    parser.add_argument("--solver", choices=["aco", "ga"], default="aco", help="Metaheurística a usar")
    parser.add_argument("--out", default="outputs", help="Directorio de salida")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log detallado")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    cfg = load_config(args.config)

    print("Cargando datos...")
    bundle = load_data(args.data_dir)
    print(f"Clases: {len(bundle.classes)} | Docentes: {len(bundle.teachers)} | Solver: {args.solver}")

    start = time.perf_counter()
    result = run_solver(args.solver, bundle, cfg)
    elapsed = time.perf_counter() - start

    if args.solver == "aco":
        domains = build_class_domains(
            bundle.classes, cfg.schedule, bundle.programs, bundle.courses, bundle.course_ratings
        )
        labs = {name: dom.lab_subjects for name, dom in domains.items()}
    else:
        labs = class_lab_subjects(bundle.classes)
    problems = audit_timetables(
        result.timetables,
        break_slots=cfg.schedule.break_slots,
        lab_subjects=labs,
    )

    print("\n--- MEJOR SOLUCIÓN ---")
    print(f"Penalización: {-result.score:.2f} | Tiempo: {elapsed:.2f}s | Observaciones: {len(problems)}")
    for line in problems[:20]:
        print(f"  - {line}")

    metrics = {
        "solver": args.solver,
        "best_penalty": -result.score,
        "audit_problems": len(problems),
        "time_sec": elapsed,
        "rounds_ran": len(result.history),
    }
    out_dir = Path(args.out)
    export_outputs(result, metrics, out_dir)
    print(f"Se guardaron resultados en {out_dir}/schedule.csv y {out_dir}/teacher_hours.csv")


if __name__ == "__main__":
    main()
