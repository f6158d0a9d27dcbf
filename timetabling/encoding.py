"""
Codifica y decodifica las grillas al formato que consume la capa externa:
celdas {subjectName, className, status, teacherId} en una matriz día×periodo,
y una tabla plana (DataFrame) para exportar a CSV.
"""
from typing import Any, Dict, List, Mapping, Optional

import pandas as pd

from .model import Grid, Slot, Solution, VALID_STATUSES
from .exceptions import InvalidInputError


def slot_to_dict(slot: Optional[Slot]) -> Optional[Dict[str, str]]:
    if slot is None:
        return None
    return {
        "subjectName": slot.subject_name,
        "className": slot.class_name,
        "status": slot.status,
        "teacherId": slot.teacher_id,
    }


def slot_from_dict(data: Optional[Mapping[str, Any]]) -> Optional[Slot]:
    if data is None:
        return None
    status = str(data.get("status", ""))
    if status not in VALID_STATUSES:
        raise InvalidInputError(f"Estado de celda desconocido: {status!r}", {"cell": dict(data)})
    return Slot(
        subject_name=str(data.get("subjectName", "")),
        class_name=str(data.get("className", "")),
        status=status,
        teacher_id=str(data.get("teacherId") or ""),
    )


def grid_to_payload(grid: Grid) -> List[List[Optional[Dict[str, str]]]]:
    return [[slot_to_dict(cell) for cell in row] for row in grid]


def grid_from_payload(rows: List[List[Optional[Mapping[str, Any]]]]) -> Grid:
    return [[slot_from_dict(cell) for cell in row] for row in rows]


def timetables_to_payload(timetables: Solution) -> Dict[str, List[List[Optional[Dict[str, str]]]]]:
    return {name: grid_to_payload(grid) for name, grid in timetables.items()}


def timetables_from_payload(payload: Mapping[str, Any]) -> Solution:
    return {str(name): grid_from_payload(rows) for name, rows in payload.items()}


def timetables_to_dataframe(timetables: Solution) -> pd.DataFrame:
    data = []
    for class_name, grid in timetables.items():
        for d, row in enumerate(grid):
            for p, cell in enumerate(row):
                if cell is None:
                    continue
                data.append(
                    {
                        "Clase": class_name,
                        "Dia": d,
                        "Periodo": p,
                        "Materia": cell.subject_name,
                        "Estado": cell.status,
                        "Docente": cell.teacher_id,
                    }
                )
    return pd.DataFrame(data, columns=["Clase", "Dia", "Periodo", "Materia", "Estado", "Docente"])


def teacher_hours_to_dataframe(hours_left: Mapping[str, int]) -> pd.DataFrame:
    return pd.DataFrame(
        [{"Docente": tid, "HorasRestantes": left} for tid, left in hours_left.items()],
        columns=["Docente", "HorasRestantes"],
    )
