# timetabling/data_loader.py
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple
import json

import pandas as pd

from .exceptions import InvalidInputError
from .model import (
    ClassUnit,
    Course,
    ElectiveOption,
    Program,
    SubjectDefinition,
    Teacher,
    LAB,
    MAJOR,
    THEORY,
)


@dataclass(frozen=True)
class DataBundle:
    classes: List[ClassUnit]
    teachers: List[Teacher]
    programs: List[Program] = field(default_factory=list)
    courses: List[Course] = field(default_factory=list)
    course_ratings: Dict[str, float] = field(default_factory=dict)


def _records(data: Any) -> List[Any]:
    # La capa de ingesta entrega listas o mapas {id: registro}
    if data is None:
        return []
    if isinstance(data, Mapping):
        return list(data.values())
    return list(data)


def _str_ids(values: Any) -> Tuple[str, ...]:
    if not values:
        return ()
    if isinstance(values, str):
        values = [v for v in values.replace(",", ";").split(";")]
    return tuple(str(v).strip() for v in values if v is not None and str(v).strip())


def _num(value: Any, default: float = 0.0) -> float:
    try:
        num = float(value)
    except (TypeError, ValueError):
        return default
    return default if pd.isna(num) else num


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "si", "sí", "lab")
    return bool(value) and not (isinstance(value, float) and pd.isna(value))


def _text(value: Any) -> str:
    if value is None or (isinstance(value, float) and pd.isna(value)):
        return ""
    return str(value).strip()


def parse_subject(rec: Any) -> SubjectDefinition:
    if isinstance(rec, SubjectDefinition):
        return rec
    name = _text(rec.get("name"))
    if not name:
        raise InvalidInputError("Materia sin nombre", {"record": rec})
    delivery = _text(rec.get("delivery")).lower()
    if delivery not in (THEORY, LAB):
        delivery = LAB if _flag(rec.get("isLab", False)) else THEORY
    options = tuple(
        ElectiveOption(name=_text(o.get("name")), teachers=_str_ids(o.get("teachers")))
        for o in _records(rec.get("electiveOptionsDetailed") or rec.get("electiveOptions"))
        if isinstance(o, Mapping)
    )
    return SubjectDefinition(
        name=name,
        credits=_num(rec.get("credits")),
        teachers=_str_ids(rec.get("teachers")),
        course_type=_text(rec.get("courseType")) or MAJOR,
        delivery=delivery,
        elective_options=options,
        electives_to_pick=int(_num(rec.get("electivesToPick", rec.get("pickCount", 0)))),
    )


def parse_class(rec: Any) -> ClassUnit:
    if isinstance(rec, ClassUnit):
        return rec
    name = _text(rec.get("name"))
    if not name:
        raise InvalidInputError("Clase sin nombre", {"record": rec})
    return ClassUnit(
        name=name,
        program=_text(rec.get("program")),
        semester=int(_num(rec.get("semester", rec.get("sem", 0)))),
        students=_str_ids(rec.get("students")),
        subjects=tuple(parse_subject(s) for s in _records(rec.get("subjects"))),
    )


def parse_teacher(rec: Any) -> Teacher:
    if isinstance(rec, Teacher):
        return rec
    tid = _text(rec.get("id"))
    if not tid:
        raise InvalidInputError("Docente sin identificador", {"record": rec})
    return Teacher(id=tid, weekly_required_hours=int(_num(rec.get("weeklyRequiredHours"))))


def parse_program(rec: Any) -> Optional[Program]:
    if isinstance(rec, Program):
        return rec
    name = _text(rec.get("program")) if isinstance(rec, Mapping) else ""
    if not name:
        return None
    return Program(program=name, min_total_credits=_num(rec.get("minTotalCredits")))


def parse_course(rec: Any) -> Optional[Course]:
    if isinstance(rec, Course):
        return rec
    name = _text(rec.get("name")) if isinstance(rec, Mapping) else ""
    if not name:
        return None
    return Course(
        name=name,
        program=_text(rec.get("program")),
        semester=int(_num(rec.get("semester"))),
        credits=_num(rec.get("credits")),
        is_lab=_flag(rec.get("isLab", False)),
        style=_text(rec.get("style")),
        category=_text(rec.get("category")),
    )


def parse_classes(data: Any) -> List[ClassUnit]:
    return [parse_class(r) for r in _records(data)]


def parse_teachers(data: Any) -> List[Teacher]:
    return [parse_teacher(r) for r in _records(data)]


def parse_programs(data: Any) -> List[Program]:
    # Programas y cursos son opcionales: los registros incompletos se omiten
    return [p for p in (parse_program(r) for r in _records(data)) if p is not None]


def parse_courses(data: Any) -> List[Course]:
    return [c for c in (parse_course(r) for r in _records(data)) if c is not None]


def parse_ratings(data: Any) -> Dict[str, float]:
    if isinstance(data, pd.DataFrame):
        data = dict(zip(data["name"].astype(str), data["rating"]))
    if not data:
        return {}
    out = {}
    for name, rating in dict(data).items():
        num = _num(rating, default=float("nan"))
        if not pd.isna(num):
            out[str(name)] = num
    return out


def _read_csv_records(path: Path) -> List[Dict[str, Any]]:
    if not path.exists():
        return []
    df = pd.read_csv(path)
    return df.to_dict(orient="records")


def load_data(data_dir: str) -> DataBundle:
    """
    Carga un directorio con classes.json, teachers.csv y, opcionalmente,
    programs.csv, courses.csv y course_ratings.csv.
    """
    base = Path(data_dir)
    classes_raw = json.loads((base / "classes.json").read_text(encoding="utf-8"))

    ratings_path = base / "course_ratings.csv"
    ratings = parse_ratings(pd.read_csv(ratings_path)) if ratings_path.exists() else {}

    courses_raw = _read_csv_records(base / "courses.csv")
    return DataBundle(
        classes=parse_classes(classes_raw),
        teachers=parse_teachers(_read_csv_records(base / "teachers.csv")),
        programs=parse_programs(_read_csv_records(base / "programs.csv")),
        courses=parse_courses(courses_raw),
        course_ratings=ratings,
    )
