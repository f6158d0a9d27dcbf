# timetabling/model.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Estados de una celda
CONFIRMED = "confirmed"
FREE = "free"
BREAK = "break"
ELECTIVE = "elective"
VALID_STATUSES = (CONFIRMED, FREE, BREAK, ELECTIVE)

# Tipos de curso y modalidad
MAJOR = "major"
SKILL_BASED = "skill_based"
ELECTIVE_COURSE = "elective"
THEORY = "theory"
LAB = "lab"

LAB_LENGTH = 3  # una sesión de laboratorio ocupa 3 periodos seguidos


@dataclass(frozen=True)
class Slot:
    # Inmutable: mutar una celda = reemplazar el objeto en la grilla
    subject_name: str
    class_name: str
    status: str
    teacher_id: str = ""


Grid = List[List[Optional[Slot]]]
Solution = Dict[str, Grid]


@dataclass(frozen=True)
class ElectiveOption:
    name: str
    teachers: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SubjectDefinition:
    name: str
    credits: float = 0.0
    teachers: Tuple[str, ...] = ()
    course_type: str = MAJOR
    delivery: str = THEORY
    elective_options: Tuple[ElectiveOption, ...] = ()
    electives_to_pick: int = 0

    @property
    def is_elective_group(self) -> bool:
        return self.course_type == ELECTIVE_COURSE


@dataclass(frozen=True)
class ClassUnit:
    name: str
    program: str = ""
    semester: int = 0
    students: Tuple[str, ...] = ()
    subjects: Tuple[SubjectDefinition, ...] = ()


@dataclass(frozen=True)
class Teacher:
    id: str
    weekly_required_hours: int = 0


@dataclass(frozen=True)
class Program:
    program: str
    min_total_credits: float = 0.0


@dataclass(frozen=True)
class Course:
    name: str
    program: str = ""
    semester: int = 0
    credits: float = 0.0
    is_lab: bool = False
    style: str = ""
    category: str = ""


@dataclass(frozen=True)
class CourseMeta:
    is_lab: bool = False
    style: str = ""
    rating: Optional[float] = None


@dataclass(frozen=True)
class DemandItem:
    # Una unidad de demanda: 1 periodo de teoría o 1 sesión de laboratorio (3 periodos)
    subject_name: str
    teachers: Tuple[str, ...] = ()
    is_lab: bool = False
    teacher_id: str = ""

    @property
    def length(self) -> int:
        return LAB_LENGTH if self.is_lab else 1


@dataclass
class ScheduleResult:
    timetables: Solution
    teacher_hours_left: Dict[str, int]
    score: float = 0.0
    history: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        from .encoding import timetables_to_payload

        return {
            "timetables": timetables_to_payload(self.timetables),
            "teacherHoursLeft": dict(self.teacher_hours_left),
        }
