import logging
import pandas as pd
from pathlib import Path
from typing import List, Any
from timetable_engine.schemas import (
    TimetableInputs, Course, Teacher, Room, SchoolClass
)

logger = logging.getLogger(__name__)

REQUIRED_SHEETS = ('Courses', 'Teachers', 'Rooms')

def _parse_comma_separated_field(value: Any) -> List[str]:
    """
    Safely parses a string that may contain comma-separated values into a list of strings.
    Handles empty, NaN, or non-string values gracefully.
    """
    if pd.isna(value):
        return []
    s_value = str(value)
    if not s_value.strip():
        return []
    items = [item.strip() for item in s_value.split(',')]
    return [item for item in items if item]

def _optional(row: pd.Series, column: str, default: Any = None) -> Any:
    """Returns the cell value, or the default when the column is missing or the cell is empty."""
    if column not in row.index:
        return default
    value = row[column]
    if pd.isna(value):
        return default
    if isinstance(value, str) and not value.strip():
        return default
    return value

def _text(value: Any) -> str:
    # Excel hands back floats for numeric ids ("101" -> 101.0).
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()

def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', 'y', '1')
    return bool(value)

def _parse_courses(df: pd.DataFrame) -> List[Course]:
    """Parses the courses DataFrame into a list of Course objects."""
    courses: List[Course] = []
    for _, row in df.iterrows():
        teacher_id = _optional(row, 'assigned_teacher_id')
        descriptor = _optional(row, 'theory_practical')
        course = Course(
            course_id=_text(row['course_id']),
            code=_text(_optional(row, 'code', row['course_id'])),
            name=_text(_optional(row, 'name', '')),
            credits=int(_optional(row, 'credits', 0)),
            department=_text(_optional(row, 'department', '')),
            semester=_text(row['semester']),
            year=int(row['year']),
            category=_text(_optional(row, 'category', 'core')),
            max_enrollment=int(_optional(row, 'max_enrollment', 30)),
            theory_practical=_text(descriptor) if descriptor is not None else None,
            assigned_teacher_id=_text(teacher_id) if teacher_id is not None else None,
        )
        courses.append(course)
    return courses

def _parse_teachers(df: pd.DataFrame) -> List[Teacher]:
    """Parses the teachers DataFrame; an empty availability cell means fully available."""
    teachers: List[Teacher] = []
    for _, row in df.iterrows():
        availability = _optional(row, 'availability')
        teacher = Teacher(
            teacher_id=_text(row['teacher_id']),
            name=_text(_optional(row, 'name', '')),
            department=_text(_optional(row, 'department', '')),
            weekly_workload=int(_optional(row, 'weekly_workload', 20)),
            availability=_text(availability) if availability is not None else None,
        )
        teachers.append(teacher)
    return teachers

def _parse_rooms(df: pd.DataFrame) -> List[Room]:
    """Parses the rooms DataFrame into a list of Room objects."""
    rooms: List[Room] = []
    for _, row in df.iterrows():
        room = Room(
            room_id=_text(row['room_id']),
            name=_text(_optional(row, 'name', '')),
            room_type=_text(_optional(row, 'room_type', 'classroom')).lower(),
            capacity=int(row['capacity']),
            building=_text(_optional(row, 'building', '')),
            is_available=_flag(_optional(row, 'is_available', True)),
        )
        rooms.append(room)
    return rooms

def _parse_classes(df: pd.DataFrame) -> List[SchoolClass]:
    """Parses the classes DataFrame, handling the comma-separated 'course_codes' column."""
    classes: List[SchoolClass] = []
    for _, row in df.iterrows():
        school_class = SchoolClass(
            class_id=_text(row['class_id']),
            name=_text(_optional(row, 'name', '')),
            department=_text(_optional(row, 'department', '')),
            semester=int(_optional(row, 'semester', 1)),
            year=int(_optional(row, 'year', 1)),
            student_count=int(_optional(row, 'student_count', 0)),
            course_codes=_parse_comma_separated_field(_optional(row, 'course_codes')),
        )
        classes.append(school_class)
    return classes

def load_timetable_inputs_from_excel(file_path: str) -> TimetableInputs:
    """
    Main public function to read the entity lists from an Excel file,
    parse and validate them, and return a single TimetableInputs object.
    """
    file_path_obj = Path(file_path).expanduser()
    if not file_path_obj.exists():
        raise FileNotFoundError(f'Fatal Error: provided file path {file_path_obj} does not exist.')

    try:
        sheets = pd.read_excel(file_path_obj, sheet_name=None)

        for required_sheet in REQUIRED_SHEETS:
            if required_sheet not in sheets:
                raise ValueError(f"Required sheet '{required_sheet}' not found in the Excel file.")

        courses = _parse_courses(sheets['Courses'])
        teachers = _parse_teachers(sheets['Teachers'])
        rooms = _parse_rooms(sheets['Rooms'])
        classes = _parse_classes(sheets['Classes']) if 'Classes' in sheets else []

        logger.info(
            "Loaded %d courses, %d teachers, %d rooms, %d classes from %s",
            len(courses), len(teachers), len(rooms), len(classes), file_path_obj
        )
        return TimetableInputs(courses=courses, teachers=teachers, rooms=rooms, classes=classes)

    except Exception as e:
        raise ValueError(f"Failed to load or parse the timetable data. Reason: {e}") from e
