import logging
import random
import threading
from collections import deque
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple
from timetable_engine.schemas import (
    ConstraintModel, Course, CourseSession, GenerationOptions, GenerationResult,
    Room, RoomType, SessionType, Teacher, TimetableEntry, cohort_key, section_key
)
from timetable_engine.constraints import (
    OccupancyIndex,
    evaluate_timetable,
    is_consistent,
    is_valid_timetable,
    slot_balance_score,
    validate_inputs,
    weekly_caps_for,
)
from timetable_engine.preprocessing import (
    expand_course_sessions,
    is_mandatory_lunch,
    parse_teacher_availability,
    slot_key,
)
from timetable_engine.reporting import build_quality_report, compute_statistics

logger = logging.getLogger(__name__)

# --- Type Aliases ---
Block = List[TimetableEntry]
Placements = Dict[str, Block]

# Reasons that depend on the room; any other rejection rules out the slot for every room.
ROOM_DEPENDENT_REASONS = {"Room Conflict"}

class TimetableGenerator:
    """
    The main engine for timetabling semester/year cohorts: greedy placement,
    bounded retry, minimum-load backfill and local-search optimization.
    """

    def __init__(
        self,
        courses: Sequence[Course],
        teachers: Sequence[Teacher],
        rooms: Sequence[Room],
        constraints: Optional[ConstraintModel] = None,
        seed: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Validates the input, keeps only available rooms, and prepares the
        session list and availability lookups for efficient placement.
        """
        self.constraints = constraints or ConstraintModel()
        self.rooms: List[Room] = validate_inputs(courses, teachers, rooms, self.constraints)
        self.courses = list(courses)
        self.teachers = list(teachers)
        self.periods: List[str] = list(self.constraints.periods_per_day)
        self.rng = rng or random.Random(seed)

        self.course_map: Dict[str, Course] = {}
        self.teacher_map: Dict[str, Teacher] = {}
        self.teacher_slots: Dict[str, FrozenSet[str]] = {}
        self.weekly_caps: Dict[str, int] = weekly_caps_for(self.teachers, self.constraints)
        self.sessions: List[CourseSession] = []

        self._initialize_internal_lookups()

    def _initialize_internal_lookups(self):
        for course in self.courses:
            self.course_map[course.course_id] = course
            self.sessions.extend(expand_course_sessions(course))

        for teacher in self.teachers:
            self.teacher_map[teacher.teacher_id] = teacher
            self.teacher_slots[teacher.teacher_id] = parse_teacher_availability(teacher, self.constraints)

    def generate(
        self,
        options: Optional[GenerationOptions] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """
        The main public entry point. Always returns a result; sessions that
        cannot be placed are listed in `unassigned` instead of raising.
        """
        options = options or GenerationOptions()
        if options.seed is not None:
            self.rng = random.Random(options.seed)

        index = OccupancyIndex(self.constraints, self.weekly_caps)
        logger.info("Starting timetable generation for %d sessions...", len(self.sessions))

        placements, unassigned = self._generate_initial_timetable(index)
        logger.info("Initial assignment: %d assigned, %d unassigned", len(placements), len(unassigned))

        unassigned = self._resolve_conflicts(index, placements, unassigned, options.max_resolve_attempts)
        logger.info("After conflict resolution: %d assigned, %d unassigned", len(placements), len(unassigned))

        unassigned = self._backfill_minimum_daily_load(index, placements, unassigned)

        if options.optimize:
            logger.info("Optimizing timetable...")
            placements = self._optimize_timetable(placements, options.max_optimize_iterations, cancel_event)

        timetable = self._flatten(placements)
        statistics = compute_statistics(
            timetable,
            total_sessions=len(self.sessions),
            assigned_sessions=len(placements),
            teachers=self.teachers,
            rooms=self.rooms,
            constraints=self.constraints,
            objective_score=evaluate_timetable(timetable, self.periods),
        )
        sections = {self._section_of(self.course_map[s.course_id]) for s in self.sessions}
        quality = build_quality_report(timetable, sections, self.constraints)
        logger.info(
            "Generation completed: %d sessions assigned, %d unassigned",
            len(placements), len(unassigned)
        )

        return GenerationResult(
            timetable=timetable,
            unassigned=unassigned,
            conflicts=[],
            statistics=statistics,
            quality=quality,
        )

    # --- Step 1: Initial greedy assignment ---

    def _generate_initial_timetable(self, index: OccupancyIndex) -> Tuple[Placements, List[CourseSession]]:
        """Practicals first (scarce labs, consecutive periods), then by descending credits."""
        placements: Placements = {}
        unassigned: List[CourseSession] = []

        ordered = sorted(
            self.sessions,
            key=lambda s: (s.session_type != SessionType.PRACTICAL, -self.course_map[s.course_id].credits),
        )
        for session in ordered:
            block = self._find_best_slot(session, index)
            if block:
                self._commit(index, placements, session, block)
            else:
                logger.debug("No slot found for %s in the initial pass", session.session_id)
                unassigned.append(session)
        return placements, unassigned

    def _find_best_slot(
        self,
        session: CourseSession,
        index: OccupancyIndex,
        days: Optional[Sequence[int]] = None,
    ) -> Optional[Block]:
        """
        Score every (day, period[, next period]) the teacher can take and try
        them best-first against the suitable rooms. Lab blocks are placed
        atomically: both periods must be free for the same teacher and room.
        """
        course = self.course_map[session.course_id]
        teacher = self.teacher_map.get(course.assigned_teacher_id) if course.assigned_teacher_id else None
        if teacher is None:
            return None

        suitable_rooms = self._suitable_rooms(session)
        if not suitable_rooms:
            return None

        available = self.teacher_slots[teacher.teacher_id]
        group = self._group_of(course)
        section = self._section_of(course)
        duration = session.duration_periods

        candidates = []
        for day in (days if days is not None else self.constraints.working_days):
            for start in range(len(self.periods) - duration + 1):
                block_periods = self.periods[start:start + duration]
                if any(is_mandatory_lunch(p, course.department, self.constraints) for p in block_periods):
                    continue
                if any(slot_key(day, p) not in available for p in block_periods):
                    continue
                score = sum(
                    slot_balance_score(index, group, section, course.department, int(day), p)
                    for p in block_periods
                )
                # Random key breaks ties between equal scores.
                candidates.append((score, self.rng.random(), int(day), block_periods))

        candidates.sort()
        for _, _, day, block_periods in candidates:
            for room in suitable_rooms:
                block = [
                    self._make_entry(session, course, teacher, room, day, period)
                    for period in block_periods
                ]
                is_valid, reason = is_consistent(block, index)
                if is_valid:
                    return block
                if reason not in ROOM_DEPENDENT_REASONS:
                    break
        logger.debug("Group %s: no valid candidate for %s", group, session.session_id)
        return None

    def _suitable_rooms(self, session: CourseSession) -> List[Room]:
        """Rooms that seat the group; labs only for practicals, and lectures try non-lab rooms first."""
        rooms = [
            room for room in self.rooms
            if room.capacity >= session.group_size
            and (not session.requires_lab or room.room_type == RoomType.LAB)
        ]
        return sorted(
            rooms,
            key=lambda r: (r.room_type == RoomType.LAB and not session.requires_lab, r.capacity, r.room_id),
        )

    def _make_entry(
        self,
        session: CourseSession,
        course: Course,
        teacher: Teacher,
        room: Room,
        day: int,
        period: str,
    ) -> TimetableEntry:
        return TimetableEntry(
            session_id=session.session_id,
            course_id=course.course_id,
            teacher_id=teacher.teacher_id,
            room_id=room.room_id,
            day=day,
            period=period,
            session_type=session.session_type,
            semester=course.semester,
            year=course.year,
            department=course.department,
        )

    def _commit(self, index: OccupancyIndex, placements: Placements, session: CourseSession, block: Block):
        index.add_block(block)
        placements[session.session_id] = block

    # --- Step 2: Conflict resolution (bounded retry) ---

    def _resolve_conflicts(
        self,
        index: OccupancyIndex,
        placements: Placements,
        unassigned: List[CourseSession],
        max_attempts: int = 1000,
    ) -> List[CourseSession]:
        """
        Retry unassigned sessions against the grown timetable. This is a second
        greedy attempt with a shared budget, not a search tree with undo; a full
        pass over the queue without progress ends it early.
        """
        remaining = deque(unassigned)
        attempts = 0
        stalled = 0
        while remaining and attempts < max_attempts:
            attempts += 1
            session = remaining.popleft()
            block = self._find_best_slot(session, index)
            if block:
                self._commit(index, placements, session, block)
                stalled = 0
            else:
                remaining.append(session)
                stalled += 1
                if stalled >= len(remaining):
                    break
        return list(remaining)

    # --- Step 3: Minimum-daily-load backfill ---

    def _backfill_minimum_daily_load(
        self,
        index: OccupancyIndex,
        placements: Placements,
        unassigned: List[CourseSession],
    ) -> List[CourseSession]:
        minimum = self.constraints.min_daily_periods_per_section
        remaining = list(unassigned)
        sections = sorted({self._section_of(self.course_map[s.course_id]) for s in remaining})

        filled = 0
        for section in sections:
            for day in self.constraints.working_days:
                day = int(day)
                while index.section_day_load[(section, day)] < minimum:
                    pool = [s for s in remaining if self._section_of(self.course_map[s.course_id]) == section]
                    placed = None
                    for session in pool:
                        block = self._find_best_slot(session, index, days=[day])
                        if block:
                            self._commit(index, placements, session, block)
                            placed = session
                            break
                    if placed is None:
                        break
                    remaining.remove(placed)
                    filled += 1
        if filled:
            logger.info("Backfill placed %d more sessions on under-loaded days", filled)
        return remaining

    # --- Step 4: Local search optimization ---

    def _optimize_timetable(
        self,
        placements: Placements,
        max_iterations: int = 1000,
        cancel_event: Optional[threading.Event] = None,
    ) -> Placements:
        """
        Swap the start slots of two random sessions and keep the swap when the
        timetable stays valid and the objective does not drop.
        """
        current = dict(placements)
        keys = list(current)
        best_score = evaluate_timetable(self._flatten(current), self.periods)
        if len(keys) < 2:
            return current

        accepted = 0
        for iteration in range(max_iterations):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Optimization cancelled after %d iterations", iteration)
                break
            first, second = self.rng.sample(keys, 2)
            neighbor = self._generate_neighbor(current, first, second)
            if neighbor is None:
                continue
            score = evaluate_timetable(self._flatten(neighbor), self.periods)
            if score >= best_score:
                current = neighbor
                best_score = score
                accepted += 1

        logger.info("Optimization finished with score %.1f (%d swaps accepted)", best_score, accepted)
        return current

    def _generate_neighbor(self, current: Placements, first: str, second: str) -> Optional[Placements]:
        block_a, block_b = current[first], current[second]
        if len(block_a) != len(block_b):
            return None
        if (block_a[0].day, block_a[0].period) == (block_b[0].day, block_b[0].period):
            return None

        moved_a = self._move_block(block_a, block_b)
        moved_b = self._move_block(block_b, block_a)
        if not self._block_allowed(moved_a) or not self._block_allowed(moved_b):
            return None

        neighbor = dict(current)
        neighbor[first] = moved_a
        neighbor[second] = moved_b
        if not is_valid_timetable(self._flatten(neighbor), self.constraints, self.weekly_caps):
            return None
        return neighbor

    @staticmethod
    def _move_block(block: Block, target: Block) -> Block:
        return [
            entry.model_copy(update={'day': slot.day, 'period': slot.period})
            for entry, slot in zip(block, target)
        ]

    def _block_allowed(self, block: Block) -> bool:
        """Availability and mandatory lunch still hold after a move."""
        for entry in block:
            if slot_key(entry.day, entry.period) not in self.teacher_slots.get(entry.teacher_id, frozenset()):
                return False
            if is_mandatory_lunch(entry.period, entry.department, self.constraints):
                return False
        return True

    # --- Helpers ---

    @staticmethod
    def _flatten(placements: Placements) -> List[TimetableEntry]:
        return [entry for block in placements.values() for entry in block]

    @staticmethod
    def _group_of(course: Course) -> str:
        return cohort_key(course.semester, course.year)

    @staticmethod
    def _section_of(course: Course) -> str:
        return section_key(course.department, course.semester, course.year)
