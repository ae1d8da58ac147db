"""
Tests for statistics, the daily-band quality report and the conflict auditor.
"""

import unittest

from timetable_engine.conflicts import (
    analyze_conflicts, audit_timetable, imbalance_conflict, shortage_conflict, sparse_day_conflict
)
from timetable_engine.reporting import build_quality_report, compute_statistics, section_daily_counts
from timetable_engine.schemas import (
    ConflictType, ConstraintModel, CourseSession, Room, SessionType, Severity, Teacher, TimetableEntry
)


def entry(session_id, teacher="T1", room="R1", day=1, period="P1", class_id=None):
    return TimetableEntry(
        session_id=session_id,
        course_id="CS101",
        teacher_id=teacher,
        room_id=room,
        day=day,
        period=period,
        session_type=SessionType.LECTURE,
        semester="1",
        year=1,
        department="CS",
        class_id=class_id,
    )


class TestStatistics(unittest.TestCase):
    def test_utilization_covers_every_teacher_and_room(self) -> None:
        timetable = [entry(f"S{i}", day=1 + i // 6, period=f"P{1 + i % 6}") for i in range(6)]
        stats = compute_statistics(
            timetable,
            total_sessions=8,
            assigned_sessions=6,
            teachers=[Teacher(teacher_id="T1", weekly_workload=12), Teacher(teacher_id="T2", weekly_workload=0)],
            rooms=[Room(room_id="R1", capacity=30), Room(room_id="R2", capacity=30)],
            constraints=ConstraintModel(),
        )
        self.assertEqual(stats.total_sessions, 8)
        self.assertAlmostEqual(stats.teacher_utilization["T1"], 50.0)
        self.assertEqual(stats.teacher_utilization["T2"], 0.0)
        self.assertAlmostEqual(stats.room_utilization["R1"], 6 / 36 * 100)
        self.assertEqual(stats.room_utilization["R2"], 0.0)


class TestQualityReport(unittest.TestCase):
    def test_sparse_and_empty_days(self) -> None:
        timetable = [entry("S1", day=1, period="P1"), entry("S2", day=1, period="P2")]
        timetable += [entry(f"T{i}", day=2, period=f"P{i}") for i in range(1, 5)]
        section = timetable[0].section_key

        counts = section_daily_counts(timetable, section, ConstraintModel().working_days)
        self.assertEqual(counts[1], 2)
        self.assertEqual(counts[2], 4)
        self.assertEqual(counts[3], 0)

        report = build_quality_report(timetable, [section], ConstraintModel())
        self.assertEqual(report.sections_checked, 1)
        self.assertEqual(report.sections_out_of_band, 1)
        # empty days are not flagged
        self.assertEqual([(v.day, v.periods) for v in report.violations], [(1, 2)])

    def test_overloaded_day(self) -> None:
        constraints = ConstraintModel(min_daily_periods_per_section=0, max_daily_periods_per_section=1)
        timetable = [entry("S1", period="P1"), entry("S2", period="P2")]
        report = build_quality_report(timetable, ["CS|1|1"], constraints)
        self.assertEqual(len(report.violations), 1)
        self.assertEqual(report.violations[0].maximum, 1)


class TestConflicts(unittest.TestCase):
    def test_audit_detects_injected_clashes(self) -> None:
        timetable = [
            entry("A:S1", class_id="A"),
            entry("B:S1", class_id="B", room="R2"),
            entry("C:S1", class_id="C", teacher="T2", room="R2", period="P2"),
            entry("D:S1", class_id="D", teacher="T3", room="R2", period="P2"),
        ]
        conflicts = audit_timetable(timetable, {"A": "Class A", "B": "Class B"})
        by_type = {c.type: c for c in conflicts}
        self.assertEqual(len(conflicts), 2)

        teacher_clash = by_type[ConflictType.TEACHER_CLASH]
        self.assertEqual(teacher_clash.severity, Severity.CRITICAL)
        self.assertEqual(teacher_clash.affected_classes, ["Class A", "Class B"])
        self.assertEqual(teacher_clash.affected_slots, ["1|P1"])

        room_clash = by_type[ConflictType.ROOM_CLASH]
        self.assertEqual(room_clash.affected_classes, ["C", "D"])
        self.assertEqual(room_clash.affected_slots, ["1|P2"])

    def test_clean_timetable_has_no_clashes(self) -> None:
        timetable = [entry("S1"), entry("S2", period="P2")]
        self.assertEqual(audit_timetable(timetable), [])

    def test_report_builders(self) -> None:
        session = CourseSession(session_id="A:c1-L1", course_id="c1", session_type=SessionType.LECTURE)
        shortage = shortage_conflict("A", "Class A", [session])
        self.assertEqual(shortage.type, ConflictType.RESOURCE_SHORTAGE)
        self.assertIn("A:c1-L1", shortage.description)

        imbalance = imbalance_conflict("A", "Class A", {1: 5, 2: 1})
        self.assertEqual(imbalance.severity, Severity.LOW)
        self.assertIn("4 periods", imbalance.description)

        sparse = sparse_day_conflict("A", "Class A", 3, 1, 4)
        self.assertEqual(sparse.severity, Severity.MEDIUM)
        self.assertEqual(sparse.affected_slots, ["3"])

    def test_analysis(self) -> None:
        session = CourseSession(session_id="A:c1-L1", course_id="c1", session_type=SessionType.LECTURE)
        conflicts = audit_timetable([entry("A:S1", class_id="A"), entry("B:S1", class_id="B", room="R2")])
        conflicts.append(shortage_conflict("A", "Class A", [session]))

        analysis = analyze_conflicts(conflicts)
        self.assertEqual(analysis.total_conflicts, 2)
        self.assertEqual(analysis.critical_conflicts, 1)
        self.assertEqual(analysis.conflicts_by_type, {"teacher_clash": 1, "resource_shortage": 1})
        self.assertEqual(analysis.conflicts_by_severity, {"critical": 1, "high": 1})
        self.assertEqual(analysis.overall_score, 96)
        self.assertEqual(len(analysis.recommendations), 2)

    def test_empty_analysis(self) -> None:
        analysis = analyze_conflicts([])
        self.assertEqual(analysis.overall_score, 100)
        self.assertEqual(analysis.recommendations, [])


if __name__ == "__main__":
    unittest.main()
