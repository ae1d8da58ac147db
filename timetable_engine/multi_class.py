import logging
import random
from collections import Counter
from datetime import time
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from timetable_engine.schemas import (
    ConflictReport, ConstraintModel, Course, CourseSession, GenerationOptions,
    GenerationResult, Room, RoomType, SchoolClass, SessionType, Teacher, TimetableEntry
)
from timetable_engine.constraints import OccupancyIndex, evaluate_timetable, is_consistent, validate_inputs, weekly_caps_for
from timetable_engine.conflicts import (
    analyze_conflicts, audit_timetable, imbalance_conflict, shortage_conflict, sparse_day_conflict
)
from timetable_engine.errors import NoCourses
from timetable_engine.preprocessing import (
    expand_course_sessions, is_mandatory_lunch, parse_teacher_availability, slot_key
)
from timetable_engine.reporting import build_quality_report, compute_statistics, section_daily_counts

logger = logging.getLogger(__name__)

# --- Constants for Candidate Scoring ---
DAY_SPREAD_WEIGHT = 2.0
TIME_PREFERENCE_PENALTY = 1.0
BUILDING_MATCH_BONUS = 1.5
TEACHER_DAILY_SOFT_LIMIT = 6
TEACHER_OVERLOAD_PENALTY = 100.0
MAX_DAILY_SPREAD = 2
NOON = time(12, 0)

Block = List[TimetableEntry]
Candidate = Tuple[int, List[str], Room]

class MultiClassGenerator:
    """
    Institution-wide generation over explicit classes. Classes are processed by
    priority, and every placement is checked against incremental teacher, room
    and class occupancy indexes instead of re-scanning the timetable.
    """

    def __init__(
        self,
        classes: Sequence[SchoolClass],
        courses: Sequence[Course],
        teachers: Sequence[Teacher],
        rooms: Sequence[Room],
        constraints: Optional[ConstraintModel] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        self.constraints = constraints or ConstraintModel()
        self.rooms: List[Room] = validate_inputs(courses, teachers, rooms, self.constraints)
        if not classes:
            raise NoCourses("No classes were provided for multi-class generation.")

        self.classes = list(classes)
        self.courses = list(courses)
        self.teachers = list(teachers)
        self.periods: List[str] = list(self.constraints.periods_per_day)
        self.rng = rng or random.Random(seed)

        self.course_map: Dict[str, Course] = {c.course_id: c for c in self.courses}
        self.teacher_map: Dict[str, Teacher] = {t.teacher_id: t for t in self.teachers}
        self.teacher_slots: Dict[str, FrozenSet[str]] = {
            t.teacher_id: parse_teacher_availability(t, self.constraints) for t in self.teachers
        }
        self.weekly_caps = weekly_caps_for(self.teachers, self.constraints)
        self.morning_periods = self._classify_morning_periods()
        self.class_sessions: Dict[str, List[CourseSession]] = {
            c.class_id: self._expand_class(c) for c in self.classes
        }

    @staticmethod
    def priority_score(school_class: SchoolClass) -> float:
        """Larger, more senior classes get first access to scarce slots."""
        return (10 * len(school_class.course_codes)
                + 0.1 * school_class.student_count
                + 5 * school_class.semester)

    def _resolve_course(self, code: str) -> Optional[Course]:
        for course in self.courses:
            if course.code == code:
                return course
        return self.course_map.get(code)

    def _expand_class(self, school_class: SchoolClass) -> List[CourseSession]:
        sessions: List[CourseSession] = []
        seen = set()
        for code in school_class.course_codes:
            course = self._resolve_course(code)
            if course is None:
                logger.warning("Class %s lists unknown course %r; skipping it", school_class.class_id, code)
                continue
            # Session ids are per class and course, so each course is expanded once.
            if course.course_id in seen:
                logger.warning("Class %s lists course %r more than once; ignoring the repeat",
                               school_class.class_id, code)
                continue
            seen.add(course.course_id)
            sessions.extend(expand_course_sessions(
                course, class_id=school_class.class_id, enrollment=school_class.student_count
            ))
        return sessions

    def _classify_morning_periods(self) -> FrozenSet[str]:
        morning = set()
        half = len(self.periods) / 2
        for position, period in enumerate(self.periods):
            timing = self.constraints.period_timings.get(period)
            if (timing.start < NOON) if timing is not None else (position < half):
                morning.add(period)
        return frozenset(morning)

    def generate(self, options: Optional[GenerationOptions] = None) -> GenerationResult:
        """
        Place every class in priority order, then flag unbalanced classes and
        audit the finished timetable for clashes.
        """
        options = options or GenerationOptions()
        if options.seed is not None:
            self.rng = random.Random(options.seed)

        index = OccupancyIndex(self.constraints, self.weekly_caps)
        timetable: List[TimetableEntry] = []
        unassigned: List[CourseSession] = []
        conflicts: List[ConflictReport] = []

        ordered = sorted(self.classes, key=self.priority_score, reverse=True)
        logger.info("Starting multi-class generation for %d classes...", len(ordered))

        for school_class in ordered:
            sessions = sorted(
                self.class_sessions[school_class.class_id],
                key=lambda s: s.session_type != SessionType.PRACTICAL,
            )
            missed: List[CourseSession] = []
            for session in sessions:
                block = self._place_session(school_class, session, index)
                if block is None:
                    missed.append(session)
                    continue
                index.add_block(block)
                timetable.extend(block)

            if missed:
                unassigned.extend(missed)
                conflicts.append(shortage_conflict(school_class.class_id, self._label(school_class), missed))
            logger.info(
                "Class %s: %d/%d sessions placed",
                school_class.class_id, len(sessions) - len(missed), len(sessions)
            )

        conflicts.extend(self._balance_distribution(timetable))
        class_names = {c.class_id: self._label(c) for c in self.classes}
        conflicts = audit_timetable(timetable, class_names) + conflicts

        total_sessions = sum(len(s) for s in self.class_sessions.values())
        statistics = compute_statistics(
            timetable,
            total_sessions=total_sessions,
            assigned_sessions=total_sessions - len(unassigned),
            teachers=self.teachers,
            rooms=self.rooms,
            constraints=self.constraints,
            objective_score=evaluate_timetable(timetable, self.periods),
        )
        quality = build_quality_report(timetable, class_names.keys(), self.constraints)
        logger.info(
            "Multi-class generation completed: %d sessions assigned, %d unassigned, %d conflicts",
            statistics.assigned_sessions, len(unassigned), len(conflicts)
        )

        return GenerationResult(
            timetable=timetable,
            unassigned=unassigned,
            conflicts=conflicts,
            statistics=statistics,
            quality=quality,
            conflict_analysis=analyze_conflicts(conflicts),
        )

    def _place_session(
        self,
        school_class: SchoolClass,
        session: CourseSession,
        index: OccupancyIndex,
    ) -> Optional[Block]:
        """Scan every (day, start period, room) and return the best-scoring block, if any."""
        course = self.course_map[session.course_id]
        teacher = self.teacher_map.get(course.assigned_teacher_id) if course.assigned_teacher_id else None
        if teacher is None:
            logger.debug("Session %s has no assigned teacher", session.session_id)
            return None

        rooms = [
            room for room in self.rooms
            if room.capacity >= session.group_size
            and (not session.requires_lab or room.room_type == RoomType.LAB)
        ]
        available = self.teacher_slots[teacher.teacher_id]
        duration = session.duration_periods

        best_score: Optional[float] = None
        best: List[Candidate] = []
        for day in self.constraints.working_days:
            day = int(day)
            for start in range(len(self.periods) - duration + 1):
                block_periods = self.periods[start:start + duration]
                if any(is_mandatory_lunch(p, school_class.department, self.constraints) for p in block_periods):
                    continue
                if any(slot_key(day, p) not in available for p in block_periods):
                    continue
                if any((teacher.teacher_id, day, p) in index.teacher_slots for p in block_periods):
                    continue
                if any((school_class.class_id, day, p) in index.group_slots for p in block_periods):
                    continue

                free_rooms = [
                    room for room in rooms
                    if not any((room.room_id, day, p) in index.room_slots for p in block_periods)
                ]
                if not free_rooms:
                    continue
                # Workload and gap limits do not depend on the room.
                trial_block = self._build_block(school_class, session, course, teacher, free_rooms[0], day, block_periods)
                if not is_consistent(trial_block, index)[0]:
                    continue

                for room in free_rooms:
                    score = self._score_candidate(school_class, session, teacher, room, day, block_periods, index)
                    if best_score is None or score < best_score:
                        best_score = score
                        best = [(day, block_periods, room)]
                    elif score == best_score:
                        best.append((day, block_periods, room))

        if not best:
            return None
        day, block_periods, room = self.rng.choice(best)
        return self._build_block(school_class, session, course, teacher, room, day, block_periods)

    def _score_candidate(
        self,
        school_class: SchoolClass,
        session: CourseSession,
        teacher: Teacher,
        room: Room,
        day: int,
        block_periods: List[str],
        index: OccupancyIndex,
    ) -> float:
        """Lower is better."""
        score = index.group_day_load[(school_class.class_id, day)] * DAY_SPREAD_WEIGHT

        for period in block_periods:
            is_morning = period in self.morning_periods
            if session.session_type == SessionType.PRACTICAL:
                if is_morning:
                    score += TIME_PREFERENCE_PENALTY
            elif not is_morning:
                score += TIME_PREFERENCE_PENALTY

        department = school_class.department.strip().lower()
        if department and department in room.building.lower():
            score -= BUILDING_MATCH_BONUS

        if index.teacher_day_load[(teacher.teacher_id, day)] + len(block_periods) > TEACHER_DAILY_SOFT_LIMIT:
            score += TEACHER_OVERLOAD_PENALTY
        return score

    def _build_block(
        self,
        school_class: SchoolClass,
        session: CourseSession,
        course: Course,
        teacher: Teacher,
        room: Room,
        day: int,
        block_periods: List[str],
    ) -> Block:
        return [
            TimetableEntry(
                session_id=session.session_id,
                course_id=course.course_id,
                teacher_id=teacher.teacher_id,
                room_id=room.room_id,
                day=day,
                period=period,
                session_type=session.session_type,
                semester=course.semester,
                year=course.year,
                department=school_class.department,
                class_id=school_class.class_id,
            )
            for period in block_periods
        ]

    def _balance_distribution(self, timetable: List[TimetableEntry]) -> List[ConflictReport]:
        """
        Flag classes whose busiest and lightest day differ by more than two
        periods, and class days left below the section minimum.
        """
        reports: List[ConflictReport] = []
        minimum = self.constraints.min_daily_periods_per_section
        booked = Counter(entry.class_id for entry in timetable)
        for school_class in self.classes:
            if not booked[school_class.class_id]:
                continue
            counts = section_daily_counts(timetable, school_class.class_id, self.constraints.working_days)
            label = self._label(school_class)
            if max(counts.values()) - min(counts.values()) > MAX_DAILY_SPREAD:
                logger.warning("Class %s has an unbalanced daily distribution: %s", label, counts)
                reports.append(imbalance_conflict(school_class.class_id, label, counts))
            for day, periods in counts.items():
                if 0 < periods < minimum:
                    reports.append(sparse_day_conflict(school_class.class_id, label, day, periods, minimum))
        return reports

    @staticmethod
    def _label(school_class: SchoolClass) -> str:
        return school_class.name or school_class.class_id
