from collections import Counter
from typing import Iterable, List, Sequence
from timetable_engine.schemas import (
    BandViolation, ConstraintModel, GenerationStatistics, QualityReport,
    Room, Teacher, TimetableEntry
)

# --- Utilization ---

def compute_statistics(
    timetable: Sequence[TimetableEntry],
    total_sessions: int,
    assigned_sessions: int,
    teachers: Iterable[Teacher],
    rooms: Iterable[Room],
    constraints: ConstraintModel,
    objective_score: float = 0.0,
) -> GenerationStatistics:
    """
    Utilization per teacher (booked periods over weekly workload) and per room
    (booked periods over the weekly grid), both as percentages.
    """
    teacher_counts = Counter(entry.teacher_id for entry in timetable)
    room_counts = Counter(entry.room_id for entry in timetable)
    grid_size = len(constraints.working_days) * len(constraints.periods_per_day)

    teacher_utilization = {}
    for teacher in teachers:
        count = teacher_counts.get(teacher.teacher_id, 0)
        teacher_utilization[teacher.teacher_id] = (
            count / teacher.weekly_workload * 100 if teacher.weekly_workload else 0.0
        )

    room_utilization = {}
    for room in rooms:
        count = room_counts.get(room.room_id, 0)
        room_utilization[room.room_id] = count / grid_size * 100 if grid_size else 0.0

    return GenerationStatistics(
        total_sessions=total_sessions,
        assigned_sessions=assigned_sessions,
        teacher_utilization=teacher_utilization,
        room_utilization=room_utilization,
        objective_score=objective_score,
    )

# --- Daily Band Quality ---

def section_daily_counts(timetable: Iterable[TimetableEntry], section: str, days: Iterable[int]) -> dict:
    counts = {int(day): 0 for day in days}
    for entry in timetable:
        if entry.section_key == section and int(entry.day) in counts:
            counts[int(entry.day)] += 1
    return counts

def build_quality_report(
    timetable: Sequence[TimetableEntry],
    sections: Iterable[str],
    constraints: ConstraintModel,
) -> QualityReport:
    """
    Flag section days that still sit outside the configured daily band:
    days that have classes but fewer than the minimum, or more than the maximum.
    """
    minimum = constraints.min_daily_periods_per_section
    maximum = constraints.max_daily_periods_per_section

    checked = 0
    out_of_band = set()
    violations: List[BandViolation] = []
    for section in sorted(set(sections)):
        checked += 1
        counts = section_daily_counts(timetable, section, constraints.working_days)
        for day, periods in counts.items():
            if (0 < periods < minimum) or periods > maximum:
                out_of_band.add(section)
                violations.append(BandViolation(
                    section=section, day=day, periods=periods, minimum=minimum, maximum=maximum
                ))

    return QualityReport(
        sections_checked=checked,
        sections_out_of_band=len(out_of_band),
        violations=violations,
    )
