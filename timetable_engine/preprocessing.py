import logging
import math
import re
from datetime import time
from typing import FrozenSet, List, Optional, Tuple
from timetable_engine.schemas import (
    ConstraintModel, Course, CourseSession, SessionType, Teacher
)

logger = logging.getLogger(__name__)

# --- Session Expander ---

SESSION_TOKEN = re.compile(r"(\d+)\s*([LPT])", re.IGNORECASE)
SESSION_CODES = {session_type.code: session_type for session_type in SessionType}
DEFAULT_SESSION_PLAN: List[Tuple[int, SessionType]] = [(3, SessionType.LECTURE)]

def parse_session_descriptor(descriptor: Optional[str]) -> List[Tuple[int, SessionType]]:
    """
    Parse a theory/practical descriptor such as "2L+1P" into (count, kind) pairs.

    Missing or unrecognised descriptors fall back to three lectures.
    """
    if not descriptor:
        return list(DEFAULT_SESSION_PLAN)

    plan = [
        (int(count), SESSION_CODES[code.upper()])
        for count, code in SESSION_TOKEN.findall(descriptor)
    ]
    if not plan:
        logger.debug("Descriptor %r not recognised, using default plan", descriptor)
        return list(DEFAULT_SESSION_PLAN)
    return plan

def expand_course_sessions(
    course: Course,
    class_id: Optional[str] = None,
    enrollment: Optional[int] = None,
) -> List[CourseSession]:
    """
    Expand one course into its weekly sessions.

    Practical sessions need a lab and two consecutive periods, and seat half of
    the enrollment (rounded up) because labs run in split batches.
    """
    students = course.max_enrollment if enrollment is None else enrollment
    prefix = f"{class_id}:{course.course_id}" if class_id else course.course_id

    sessions: List[CourseSession] = []
    serials = {session_type: 0 for session_type in SessionType}
    for count, session_type in parse_session_descriptor(course.theory_practical):
        is_practical = session_type == SessionType.PRACTICAL
        for _ in range(count):
            serials[session_type] += 1
            sessions.append(CourseSession(
                session_id=f"{prefix}-{session_type.code}{serials[session_type]}",
                course_id=course.course_id,
                session_type=session_type,
                duration_periods=2 if is_practical else 1,
                requires_lab=is_practical,
                group_size=math.ceil(students / 2) if is_practical else students,
                class_id=class_id,
            ))
    return sessions

# --- Lunch zones ---

def slot_key(day: int, period: str) -> str:
    return f"{int(day)}|{period}"

def _zone_applies(zone_departments: List[str], department: Optional[str]) -> bool:
    if not zone_departments:
        return True
    return bool(department) and department in zone_departments

def is_mandatory_lunch(period: str, department: Optional[str], constraints: ConstraintModel) -> bool:
    return any(
        zone.mandatory and period in zone.periods and _zone_applies(zone.departments, department)
        for zone in constraints.lunch_zones
    )

def is_flexible_lunch(period: str, department: Optional[str], constraints: ConstraintModel) -> bool:
    return any(
        not zone.mandatory and period in zone.periods and _zone_applies(zone.departments, department)
        for zone in constraints.lunch_zones
    )

# --- Availability Parser ---

DAY_NAMES = {
    "sun": 0, "mon": 1, "tue": 2, "wed": 3, "thu": 4, "fri": 5, "sat": 6,
}
AVAILABILITY_RANGE = re.compile(
    r"^([A-Za-z]+)\s+(\d{1,2})(?::(\d{2}))?\s*-\s*(\d{1,2})(?::(\d{2}))?$"
)

def _to_minutes(hours: str, minutes: Optional[str]) -> int:
    return int(hours) * 60 + int(minutes or 0)

def _time_to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute

def parse_availability_ranges(raw: str) -> List[Tuple[int, int, int]]:
    """
    Parse "Mon 9-17, Tue 09:30-12:00" into (day, start_minute, end_minute) triples.

    Ranges that cannot be read are skipped with a warning.
    """
    ranges: List[Tuple[int, int, int]] = []
    for chunk in raw.split(','):
        chunk = chunk.strip()
        if not chunk:
            continue
        match = AVAILABILITY_RANGE.match(chunk)
        day = DAY_NAMES.get(match.group(1)[:3].lower()) if match else None
        if match is None or day is None:
            logger.warning("Skipping unreadable availability range %r", chunk)
            continue
        start = _to_minutes(match.group(2), match.group(3))
        end = _to_minutes(match.group(4), match.group(5))
        ranges.append((day, start, end))
    return ranges

def parse_teacher_availability(teacher: Teacher, constraints: ConstraintModel) -> FrozenSet[str]:
    """
    Return the "day|period" tokens a teacher can be booked in.

    Without a descriptor every working slot is available; mandatory lunch
    periods for the teacher's department are always excluded.
    """
    bookable_periods = [
        period for period in constraints.periods_per_day
        if not is_mandatory_lunch(period, teacher.department, constraints)
    ]

    if not teacher.availability or not teacher.availability.strip():
        return frozenset(
            slot_key(day, period)
            for day in constraints.working_days
            for period in bookable_periods
        )

    working_days = {int(day) for day in constraints.working_days}
    slots = set()
    for day, start, end in parse_availability_ranges(teacher.availability):
        if day not in working_days:
            continue
        for period in bookable_periods:
            timing = constraints.period_timings.get(period)
            if timing is None:
                continue
            if _time_to_minutes(timing.start) >= start and _time_to_minutes(timing.end) <= end:
                slots.add(slot_key(day, period))
    return frozenset(slots)
