from collections import Counter
from typing import Dict, Iterable, List, Mapping, Optional, Sequence
from timetable_engine.schemas import (
    ConflictAnalysis, ConflictReport, ConflictType, CourseSession, Severity, TimetableEntry
)

# --- Constants for Conflict Analysis ---
MAX_EXPECTED_CONFLICTS = 50

# --- Clash Audit ---

def _class_label(entry: TimetableEntry, class_names: Mapping[str, str]) -> str:
    key = entry.section_key
    return class_names.get(key, key)

def audit_timetable(
    timetable: Iterable[TimetableEntry],
    class_names: Optional[Mapping[str, str]] = None,
) -> List[ConflictReport]:
    """
    Report every teacher or room that is booked twice in the same slot.
    Placement indexes should make this return nothing; it re-scans the
    finished timetable so an indexing regression surfaces as a critical report.
    """
    class_names = class_names or {}
    by_teacher: Dict[tuple, List[TimetableEntry]] = {}
    by_room: Dict[tuple, List[TimetableEntry]] = {}
    for entry in timetable:
        by_teacher.setdefault((entry.teacher_id, entry.slot_key), []).append(entry)
        by_room.setdefault((entry.room_id, entry.slot_key), []).append(entry)

    conflicts: List[ConflictReport] = []
    for (teacher_id, slot), entries in by_teacher.items():
        if len(entries) < 2:
            continue
        conflicts.append(ConflictReport(
            conflict_id=f"teacher-clash-{teacher_id}-{slot}",
            type=ConflictType.TEACHER_CLASH,
            severity=Severity.CRITICAL,
            title="Teacher Double Booking",
            description=f"Teacher {teacher_id} is scheduled for {len(entries)} sessions at {slot}",
            affected_classes=sorted({_class_label(e, class_names) for e in entries}),
            affected_slots=[slot],
            suggestions=[
                "Reassign one of the sessions to another qualified teacher",
                "Move one of the sessions to a free slot",
                "Adjust teacher availability or workload constraints",
            ],
        ))

    for (room_id, slot), entries in by_room.items():
        if len(entries) < 2:
            continue
        conflicts.append(ConflictReport(
            conflict_id=f"room-clash-{room_id}-{slot}",
            type=ConflictType.ROOM_CLASH,
            severity=Severity.CRITICAL,
            title="Room Double Booking",
            description=f"Room {room_id} hosts {len(entries)} sessions at {slot}",
            affected_classes=sorted({_class_label(e, class_names) for e in entries}),
            affected_slots=[slot],
            suggestions=[
                "Change the room of one of the sessions",
                "Move one of the sessions to a free slot",
                "Add rooms of this type or relax capacity constraints",
            ],
        ))
    return conflicts

# --- Advisory Reports ---

def shortage_conflict(class_id: str, class_name: str, sessions: Sequence[CourseSession]) -> ConflictReport:
    """One report per class listing the sessions that found no slot."""
    labels = [session.session_id for session in sessions]
    return ConflictReport(
        conflict_id=f"resource-shortage-{class_id}",
        type=ConflictType.RESOURCE_SHORTAGE,
        severity=Severity.HIGH,
        title="Unscheduled Sessions",
        description=f"{len(sessions)} session(s) of {class_name} could not be placed: {', '.join(labels)}",
        affected_classes=[class_name],
        suggestions=[
            "Reassign the course to a teacher with more free slots",
            "Add or free up rooms of the required type and capacity",
            "Adjust constraints (working days, periods, lunch zones, teacher limits)",
        ],
    )

def imbalance_conflict(class_id: str, class_name: str, daily_counts: Mapping[int, int]) -> ConflictReport:
    spread = max(daily_counts.values()) - min(daily_counts.values())
    return ConflictReport(
        conflict_id=f"imbalance-{class_id}",
        type=ConflictType.CONSTRAINT_VIOLATION,
        severity=Severity.LOW,
        title="Unbalanced Daily Distribution",
        description=f"{class_name} varies by {spread} periods between its lightest and busiest day",
        affected_classes=[class_name],
        affected_slots=[f"{day}:{count}" for day, count in sorted(daily_counts.items())],
        suggestions=["Move sessions from the busiest day to the lightest day"],
    )

def sparse_day_conflict(class_id: str, class_name: str, day: int, periods: int, minimum: int) -> ConflictReport:
    return ConflictReport(
        conflict_id=f"sparse-day-{class_id}-{day}",
        type=ConflictType.CONSTRAINT_VIOLATION,
        severity=Severity.MEDIUM,
        title="Sparse Teaching Day",
        description=f"{class_name} has {periods} period(s) on day {day}, below the minimum of {minimum}",
        affected_classes=[class_name],
        affected_slots=[str(day)],
        suggestions=[
            "Consolidate sessions onto fewer days",
            "Lower min_daily_periods_per_section for this class",
        ],
    )

# --- Conflict Analysis ---

def analyze_conflicts(conflicts: Sequence[ConflictReport]) -> ConflictAnalysis:
    """Summarise conflicts by type and severity with a 0-100 health score."""
    total = len(conflicts)
    critical = sum(1 for c in conflicts if c.severity == Severity.CRITICAL)
    by_type = Counter(c.type.value for c in conflicts)
    by_severity = Counter(c.severity.value for c in conflicts)
    overall = max(0, round((MAX_EXPECTED_CONFLICTS - total) / MAX_EXPECTED_CONFLICTS * 100))

    recommendations = []
    if critical:
        recommendations.append("Address critical conflicts immediately before publishing the timetable")
    if by_type.get(ConflictType.RESOURCE_SHORTAGE.value):
        recommendations.append("Review teacher availability and room supply for unscheduled sessions")
    if by_type.get(ConflictType.CONSTRAINT_VIOLATION.value):
        recommendations.append("Review daily distribution for the flagged classes")

    return ConflictAnalysis(
        total_conflicts=total,
        critical_conflicts=critical,
        conflicts_by_type=dict(by_type),
        conflicts_by_severity=dict(by_severity),
        overall_score=overall,
        recommendations=recommendations,
    )
