"""
Tests for institution-wide generation over explicit classes.
"""

import unittest
from collections import Counter

from timetable_engine.constraints import OccupancyIndex
from timetable_engine.errors import NoCourses
from timetable_engine.multi_class import MultiClassGenerator
from timetable_engine.schemas import (
    ConflictType, Course, GenerationOptions, Room, RoomType, SchoolClass, SessionType, Severity, Teacher
)


def make_courses():
    return [
        Course(course_id="c1", code="CS101", semester="1", year=1, department="CS",
               theory_practical="2L+1P", assigned_teacher_id="T1"),
        Course(course_id="c2", code="CS102", semester="1", year=1, department="CS",
               theory_practical="2L", assigned_teacher_id="T2"),
        Course(course_id="c3", code="MA101", semester="1", year=1, department="MATH",
               theory_practical="2L+1T", assigned_teacher_id="T3"),
        Course(course_id="c4", code="CS301", semester="3", year=2, department="CS",
               theory_practical="1L", assigned_teacher_id="T9"),
    ]


def make_teachers():
    return [Teacher(teacher_id=f"T{i}") for i in (1, 2, 3)]


def make_rooms():
    return [
        Room(room_id="R1", capacity=60, building="CS Block"),
        Room(room_id="R2", capacity=60, building="Main"),
        Room(room_id="LAB1", room_type=RoomType.LAB, capacity=30),
    ]


def make_classes():
    return [
        SchoolClass(class_id="A", name="CS-1A", department="CS", semester=1, student_count=40,
                    course_codes=["CS101", "CS102", "MA101"]),
        SchoolClass(class_id="B", name="CS-1B", department="CS", semester=1, student_count=35,
                    course_codes=["CS101", "c2"]),
    ]


class TestPriority(unittest.TestCase):
    def test_priority_score(self) -> None:
        school_class = SchoolClass(class_id="X", semester=3, student_count=50, course_codes=["a", "b"])
        self.assertAlmostEqual(MultiClassGenerator.priority_score(school_class), 20 + 5 + 15)

    def test_bigger_class_goes_first(self) -> None:
        classes = make_classes()
        ordered = sorted(classes, key=MultiClassGenerator.priority_score, reverse=True)
        self.assertEqual([c.class_id for c in ordered], ["A", "B"])


class TestMultiClassGeneration(unittest.TestCase):
    def setUp(self) -> None:
        self.generator = MultiClassGenerator(
            make_classes(), make_courses(), make_teachers(), make_rooms(), seed=4
        )
        self.result = self.generator.generate()

    def test_no_double_booking(self) -> None:
        timetable = self.result.timetable
        for key in (
            lambda e: (e.teacher_id, e.day, e.period),
            lambda e: (e.room_id, e.day, e.period),
            lambda e: (e.class_id, e.day, e.period),
        ):
            counts = Counter(key(e) for e in timetable)
            self.assertTrue(all(n == 1 for n in counts.values()))

    def test_audit_finds_no_clashes(self) -> None:
        self.assertEqual(self.result.conflict_analysis.critical_conflicts, 0)
        self.assertFalse([c for c in self.result.conflicts if c.severity == Severity.CRITICAL])

    def test_every_class_is_fully_placed(self) -> None:
        self.assertEqual(self.result.unassigned, [])
        self.assertEqual({e.class_id for e in self.result.timetable}, {"A", "B"})
        self.assertEqual(self.result.statistics.total_sessions, 13)
        self.assertEqual(self.result.statistics.assigned_sessions, 13)

    def test_class_sessions_use_class_enrollment(self) -> None:
        practicals = [s for s in self.generator.class_sessions["A"] if s.session_type == SessionType.PRACTICAL]
        self.assertEqual([s.group_size for s in practicals], [20])
        lab_entries = [e for e in self.result.timetable if e.session_type == SessionType.PRACTICAL]
        self.assertTrue(lab_entries)
        self.assertTrue(all(e.room_id == "LAB1" for e in lab_entries))

    def test_entries_carry_class_department(self) -> None:
        self.assertTrue(all(e.department == "CS" for e in self.result.timetable))


class TestShortages(unittest.TestCase):
    def test_unknown_teacher_becomes_resource_shortage(self) -> None:
        classes = [SchoolClass(class_id="C", name="CS-2C", department="CS", semester=3, year=2,
                               student_count=30, course_codes=["CS301", "CS102"])]
        result = MultiClassGenerator(
            classes, make_courses(), make_teachers(), make_rooms(), seed=1
        ).generate(GenerationOptions(seed=1))

        self.assertEqual([s.session_id for s in result.unassigned], ["C:c4-L1"])
        shortages = [c for c in result.conflicts if c.type == ConflictType.RESOURCE_SHORTAGE]
        self.assertEqual(len(shortages), 1)
        self.assertEqual(shortages[0].severity, Severity.HIGH)
        self.assertEqual(shortages[0].affected_classes, ["CS-2C"])
        self.assertEqual(result.statistics.assigned_sessions, 2)

    def test_unknown_course_code_is_skipped(self) -> None:
        classes = [SchoolClass(class_id="D", course_codes=["CS102", "XX999"])]
        with self.assertLogs("timetable_engine.multi_class", level="WARNING"):
            generator = MultiClassGenerator(classes, make_courses(), make_teachers(), make_rooms())
        self.assertEqual(len(generator.class_sessions["D"]), 2)

    def test_no_classes(self) -> None:
        with self.assertRaises(NoCourses):
            MultiClassGenerator([], make_courses(), make_teachers(), make_rooms())

    def test_repeated_course_code_is_expanded_once(self) -> None:
        classes = [SchoolClass(class_id="D", department="CS", student_count=30,
                               course_codes=["CS102", "CS102", "c2"])]
        with self.assertLogs("timetable_engine.multi_class", level="WARNING"):
            generator = MultiClassGenerator(classes, make_courses(), make_teachers(), make_rooms(), seed=2)
        self.assertEqual([s.session_id for s in generator.class_sessions["D"]], ["D:c2-L1", "D:c2-L2"])

        result = generator.generate()
        placed = {e.session_id for e in result.timetable}
        self.assertEqual(len(placed) + len(result.unassigned), result.statistics.total_sessions)
        self.assertEqual(result.statistics.total_sessions, 2)


def single_course_generator(descriptor, rooms, availability=None, department="CS", seed=5):
    courses = [Course(course_id="k1", code="CS900", semester="1", year=1, department=department,
                      theory_practical=descriptor, assigned_teacher_id="T1")]
    classes = [SchoolClass(class_id="K", name="CS-K", department=department, semester=1,
                           student_count=30, course_codes=["CS900"])]
    teachers = [Teacher(teacher_id="T1", availability=availability)]
    return MultiClassGenerator(classes, courses, teachers, rooms, seed=seed)


class TestCandidateScoring(unittest.TestCase):
    def test_lecture_prefers_morning(self) -> None:
        generator = single_course_generator("1L", [Room(room_id="R1", capacity=40)])
        result = generator.generate()
        self.assertEqual(len(result.timetable), 1)
        self.assertIn(result.timetable[0].period, {"P1", "P2", "P3"})

    def test_practical_prefers_afternoon(self) -> None:
        generator = single_course_generator("1P", [Room(room_id="LAB1", room_type=RoomType.LAB, capacity=30)])
        result = generator.generate()
        self.assertEqual(len(result.timetable), 2)
        self.assertTrue(all(e.period in {"P4", "P5", "P6"} for e in result.timetable))

    def test_room_in_department_building_wins(self) -> None:
        rooms = [
            Room(room_id="R1", capacity=40, building="Main"),
            Room(room_id="R2", capacity=40, building="CS Block"),
        ]
        for seed in (1, 2, 3):
            result = single_course_generator("1L", rooms, seed=seed).generate()
            self.assertEqual(result.timetable[0].room_id, "R2")

    def test_teacher_overload_penalty(self) -> None:
        room = Room(room_id="R1", capacity=40, building="Main")
        generator = single_course_generator("1L", [room])
        school_class = generator.classes[0]
        session = generator.class_sessions["K"][0]
        teacher = generator.teacher_map["T1"]

        index = OccupancyIndex(generator.constraints, generator.weekly_caps)
        index.teacher_day_load[("T1", 1)] = 6
        busy = generator._score_candidate(school_class, session, teacher, room, 1, ["P1"], index)
        free = generator._score_candidate(school_class, session, teacher, room, 2, ["P1"], index)
        self.assertEqual(busy - free, 100.0)


class TestBalancing(unittest.TestCase):
    def test_two_day_teacher_leaves_class_unbalanced(self) -> None:
        generator = single_course_generator(
            "8L", [Room(room_id="R1", capacity=40)], availability="Mon 9-17, Tue 9-17"
        )
        with self.assertLogs("timetable_engine.multi_class", level="WARNING"):
            result = generator.generate()

        self.assertEqual(len(result.timetable), 8)
        self.assertEqual({int(e.day) for e in result.timetable}, {1, 2})
        imbalance = [c for c in result.conflicts if c.conflict_id == "imbalance-K"]
        self.assertEqual(len(imbalance), 1)
        self.assertEqual(imbalance[0].type, ConflictType.CONSTRAINT_VIOLATION)
        self.assertEqual(imbalance[0].severity, Severity.LOW)
        self.assertEqual(imbalance[0].affected_classes, ["CS-K"])

    def test_sparse_day_is_reported(self) -> None:
        generator = single_course_generator("2L", [Room(room_id="R1", capacity=40)], availability="Mon 9-17")
        result = generator.generate()

        violations = [c for c in result.conflicts if c.type == ConflictType.CONSTRAINT_VIOLATION]
        self.assertEqual([c.severity for c in violations], [Severity.MEDIUM])
        self.assertEqual(violations[0].affected_slots, ["1"])
        self.assertEqual(result.conflict_analysis.conflicts_by_severity, {"medium": 1})


if __name__ == "__main__":
    unittest.main()
