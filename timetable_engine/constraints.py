from collections import Counter, defaultdict
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from timetable_engine.schemas import ConstraintModel, Course, Room, Teacher, TimetableEntry
from timetable_engine.errors import InvalidConstraints, NoCourses, NoRooms, NoTeachers
from timetable_engine.preprocessing import is_flexible_lunch

# --- Type Aliases ---
Block = Sequence[TimetableEntry]
SlotIndex = Tuple[str, int, str]

# --- Constants for Soft Constraint Scoring ---
DAY_LOAD_WEIGHT = 2.0
PERIOD_LOAD_WEIGHT = 3.0
EDGE_PERIOD_WEIGHT = 0.5
FLEXIBLE_LUNCH_PENALTY = 5.0
BELOW_MIN_DAILY_BONUS = 4.0
ABOVE_MAX_DAILY_PENALTY = 20.0
GAP_PENALTY = 10.0

# --- Constraint Model Validation ---

def validate_constraints(constraints: ConstraintModel) -> None:
    """Reject a constraint model that no generation run could honour."""
    problems: List[str] = []
    periods = constraints.periods_per_day

    if not constraints.working_days:
        problems.append("at least one working day is required")
    if not periods:
        problems.append("at least one period per day is required")
    if len(set(periods)) != len(periods):
        problems.append("period labels must be unique")
    for zone in constraints.lunch_zones:
        unknown = [p for p in zone.periods if p not in periods]
        if unknown:
            problems.append(f"lunch zone names unknown periods {unknown}")
    for period, timing in constraints.period_timings.items():
        if timing.start >= timing.end:
            problems.append(f"period {period} must start before it ends")
    if constraints.period_duration_minutes <= 0:
        problems.append("period_duration_minutes must be positive")
    if constraints.max_daily_periods_per_teacher <= 0:
        problems.append("max_daily_periods_per_teacher must be positive")
    if constraints.max_weekly_periods_per_teacher <= 0:
        problems.append("max_weekly_periods_per_teacher must be positive")
    if constraints.min_daily_periods_per_section < 0:
        problems.append("min_daily_periods_per_section cannot be negative")
    if constraints.max_daily_periods_per_section <= 0:
        problems.append("max_daily_periods_per_section must be positive")
    if constraints.min_daily_periods_per_section > constraints.max_daily_periods_per_section:
        problems.append("min_daily_periods_per_section exceeds max_daily_periods_per_section")
    if constraints.min_gap_between_periods < 0:
        problems.append("min_gap_between_periods cannot be negative")

    if problems:
        raise InvalidConstraints("Invalid constraints: " + "; ".join(problems))

def validate_inputs(
    courses: Sequence[Course],
    teachers: Sequence[Teacher],
    rooms: Sequence[Room],
    constraints: ConstraintModel,
) -> List[Room]:
    """
    Reject malformed input before any placement starts.
    Returns the rooms that are flagged available.
    """
    if not courses:
        raise NoCourses("No courses were provided for generation.")
    course_counts = Counter(course.course_id for course in courses)
    duplicates = sorted(course_id for course_id, count in course_counts.items() if count > 1)
    if duplicates:
        raise InvalidConstraints(f"Duplicate course ids: {', '.join(duplicates)}")
    if not teachers:
        raise NoTeachers("No teachers were provided for generation.")
    available_rooms = [room for room in rooms if room.is_available]
    if not available_rooms:
        raise NoRooms("No available rooms were provided for generation.")
    validate_constraints(constraints)
    return available_rooms

def weekly_caps_for(teachers: Iterable[Teacher], constraints: ConstraintModel) -> Dict[str, int]:
    """Each teacher's weekly ceiling: the global limit or their own workload, whichever is lower."""
    return {
        teacher.teacher_id: min(constraints.max_weekly_periods_per_teacher, teacher.weekly_workload)
        for teacher in teachers
    }

# --- Occupancy Index ---

class OccupancyIndex:
    """
    Per-run occupancy state: which teacher, room and student-group slots are
    taken, plus the load tallies the scoring and ceiling checks read.

    One index belongs to exactly one generation run and is threaded through
    every placement call explicitly.
    """

    def __init__(self, constraints: ConstraintModel, weekly_caps: Optional[Dict[str, int]] = None):
        self.constraints = constraints
        self.weekly_caps = weekly_caps or {}
        self.period_index: Dict[str, int] = {p: i for i, p in enumerate(constraints.periods_per_day)}

        self.teacher_slots: Set[SlotIndex] = set()
        self.room_slots: Set[SlotIndex] = set()
        self.group_slots: Set[SlotIndex] = set()

        self.teacher_day_load: Counter = Counter()
        self.teacher_week_load: Counter = Counter()
        self.group_day_load: Counter = Counter()
        self.group_period_load: Counter = Counter()
        self.section_day_load: Counter = Counter()
        self.teacher_day_sessions: Dict[Tuple[str, int], Dict[int, str]] = defaultdict(dict)

    def weekly_cap(self, teacher_id: str) -> int:
        return self.weekly_caps.get(teacher_id, self.constraints.max_weekly_periods_per_teacher)

    def add(self, entry: TimetableEntry) -> None:
        day = int(entry.day)
        self.teacher_slots.add((entry.teacher_id, day, entry.period))
        self.room_slots.add((entry.room_id, day, entry.period))
        self.group_slots.add((entry.group_key, day, entry.period))
        self.teacher_day_load[(entry.teacher_id, day)] += 1
        self.teacher_week_load[entry.teacher_id] += 1
        self.group_day_load[(entry.group_key, day)] += 1
        self.group_period_load[(entry.group_key, entry.period)] += 1
        self.section_day_load[(entry.section_key, day)] += 1
        self.teacher_day_sessions[(entry.teacher_id, day)][self.period_index[entry.period]] = entry.session_id

    def add_block(self, block: Block) -> None:
        for entry in block:
            self.add(entry)

# --- Hard Constraint Checking ---

def is_consistent(block: Block, index: OccupancyIndex) -> Tuple[bool, Optional[str]]:
    """
    The main orchestrator for hard constraint checks on one session block.
    Returns (True, None) if consistent, (False, "Reason") otherwise.
    """
    for entry in block:
        if _check_teacher_conflict(entry, index):
            return (False, "Teacher Conflict")
        if _check_room_conflict(entry, index):
            return (False, "Room Conflict")
        if _check_group_conflict(entry, index):
            return (False, "Group Conflict")
    if _check_teacher_workload(block, index):
        return (False, "Teacher Workload")
    if _check_minimum_gap(block, index):
        return (False, "Minimum Gap")
    return (True, None)

def _check_teacher_conflict(entry: TimetableEntry, index: OccupancyIndex) -> bool:
    return (entry.teacher_id, int(entry.day), entry.period) in index.teacher_slots

def _check_room_conflict(entry: TimetableEntry, index: OccupancyIndex) -> bool:
    return (entry.room_id, int(entry.day), entry.period) in index.room_slots

def _check_group_conflict(entry: TimetableEntry, index: OccupancyIndex) -> bool:
    return (entry.group_key, int(entry.day), entry.period) in index.group_slots

def _check_teacher_workload(block: Block, index: OccupancyIndex) -> bool:
    teacher_id = block[0].teacher_id
    day = int(block[0].day)
    daily = index.teacher_day_load[(teacher_id, day)] + len(block)
    weekly = index.teacher_week_load[teacher_id] + len(block)
    return (daily > index.constraints.max_daily_periods_per_teacher
            or weekly > index.weekly_cap(teacher_id))

def _check_minimum_gap(block: Block, index: OccupancyIndex) -> bool:
    min_gap = index.constraints.min_gap_between_periods
    if min_gap <= 0:
        return False
    for entry in block:
        position = index.period_index[entry.period]
        booked = index.teacher_day_sessions.get((entry.teacher_id, int(entry.day)), {})
        for other_position, other_session in booked.items():
            if other_session != entry.session_id and abs(position - other_position) - 1 < min_gap:
                return True
    return False

def find_violations(
    entries: Iterable[TimetableEntry],
    constraints: ConstraintModel,
    weekly_caps: Optional[Dict[str, int]] = None,
) -> List[str]:
    """
    Re-scan a complete timetable for hard-constraint violations.
    An empty list means the timetable is valid.
    """
    violations: List[str] = []
    index = OccupancyIndex(constraints, weekly_caps)
    for entry in entries:
        if _check_teacher_conflict(entry, index):
            violations.append(f"Teacher {entry.teacher_id} double-booked at {entry.slot_key}")
        if _check_room_conflict(entry, index):
            violations.append(f"Room {entry.room_id} double-booked at {entry.slot_key}")
        if _check_group_conflict(entry, index):
            violations.append(f"Group {entry.group_key} double-booked at {entry.slot_key}")
        if _check_minimum_gap([entry], index):
            violations.append(f"Teacher {entry.teacher_id} breaks the minimum gap at {entry.slot_key}")
        index.add(entry)

    for (teacher_id, day), load in sorted(index.teacher_day_load.items()):
        if load > constraints.max_daily_periods_per_teacher:
            violations.append(f"Teacher {teacher_id} exceeds the daily limit on day {day} ({load})")
    for teacher_id, load in sorted(index.teacher_week_load.items()):
        if load > index.weekly_cap(teacher_id):
            violations.append(f"Teacher {teacher_id} exceeds the weekly limit ({load})")
    return violations

def is_valid_timetable(
    entries: Iterable[TimetableEntry],
    constraints: ConstraintModel,
    weekly_caps: Optional[Dict[str, int]] = None,
) -> bool:
    return not find_violations(entries, constraints, weekly_caps)

# --- Soft Constraint Scoring ---

def slot_balance_score(
    index: OccupancyIndex,
    group: str,
    section: str,
    department: str,
    day: int,
    period: str,
) -> float:
    """
    Score one (day, period) for a student group; lower is better.
    Spreads load across days and periods and keeps each section inside its daily band.
    """
    constraints = index.constraints
    score = index.group_day_load[(group, day)] * DAY_LOAD_WEIGHT
    score += index.group_period_load[(group, period)] * PERIOD_LOAD_WEIGHT

    middle = len(constraints.periods_per_day) // 2
    score += abs(index.period_index[period] - middle) * EDGE_PERIOD_WEIGHT
    score += consecutive_penalty(index, group, day, period)

    if is_flexible_lunch(period, department, constraints):
        score += FLEXIBLE_LUNCH_PENALTY

    section_load = index.section_day_load[(section, day)]
    if section_load < constraints.min_daily_periods_per_section:
        score -= BELOW_MIN_DAILY_BONUS
    elif section_load >= constraints.max_daily_periods_per_section:
        score += ABOVE_MAX_DAILY_PENALTY
    return score

def consecutive_penalty(index: OccupancyIndex, group: str, day: int, period: str) -> float:
    """Quadratic penalty once a run of consecutive group periods grows past two."""
    periods = index.constraints.periods_per_day
    position = index.period_index[period]
    run = 1
    for i in range(position - 1, -1, -1):
        if (group, day, periods[i]) not in index.group_slots:
            break
        run += 1
    for i in range(position + 1, len(periods)):
        if (group, day, periods[i]) not in index.group_slots:
            break
        run += 1
    return float((run - 2) ** 2) if run > 2 else 0.0

def teacher_gap_count(entries: Iterable[TimetableEntry], periods: Sequence[str]) -> int:
    """Idle periods strictly between each teacher's first and last period of a day."""
    period_index = {p: i for i, p in enumerate(periods)}
    teacher_days: Dict[Tuple[str, int], List[int]] = {}
    for entry in entries:
        teacher_days.setdefault((entry.teacher_id, int(entry.day)), []).append(period_index[entry.period])

    gaps = 0
    for positions in teacher_days.values():
        if len(positions) < 2:
            continue
        positions.sort()
        for i in range(len(positions) - 1):
            gap_size = positions[i + 1] - positions[i] - 1
            if gap_size > 0:
                gaps += gap_size
    return gaps

def evaluate_timetable(entries: Iterable[TimetableEntry], periods: Sequence[str]) -> float:
    """Objective for local search; compact teacher days score higher."""
    return -GAP_PENALTY * teacher_gap_count(entries, periods)
