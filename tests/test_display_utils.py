import unittest

from timetable_engine.display_utils import format_timetable_for_display
from timetable_engine.schemas import ConstraintModel, DayOfWeek, SessionType, TimetableEntry


def entry(session_id, day, period, session_type=SessionType.LECTURE, semester="1", class_id=None):
    return TimetableEntry(
        session_id=session_id,
        course_id="c1",
        teacher_id="T1",
        room_id="R1",
        day=day,
        period=period,
        session_type=session_type,
        semester=semester,
        year=1,
        department="CS",
        class_id=class_id,
    )


class TestDisplayGrid(unittest.TestCase):
    def test_one_grid_per_section(self) -> None:
        constraints = ConstraintModel()
        timetable = [
            entry("c1-L1", DayOfWeek.MONDAY, "P1"),
            entry("c1-P1", DayOfWeek.WEDNESDAY, "P5", SessionType.PRACTICAL),
            entry("c1-P1", DayOfWeek.WEDNESDAY, "P6", SessionType.PRACTICAL),
            entry("c1-L2", DayOfWeek.TUESDAY, "P2", semester="3"),
        ]
        grids = format_timetable_for_display(timetable, constraints, {"c1": "CS101"})
        self.assertEqual(set(grids), {"CS|1|1", "CS|3|1"})

        grid = grids["CS|1|1"]
        self.assertEqual(list(grid.columns), ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"])
        self.assertEqual(list(grid.index)[0], "P1 09:00-10:00")
        self.assertEqual(len(grid.index), 6)
        self.assertEqual(grid.loc["P1 09:00-10:00", "Monday"], "CS101 (L) T1 @ R1")
        self.assertEqual(grid.loc["P5 14:00-15:00", "Wednesday"], "CS101 (P) T1 @ R1")
        self.assertEqual(grid.loc["P6 15:00-16:00", "Wednesday"], "CS101 (P) T1 @ R1")
        self.assertEqual(grid.loc["P2 10:00-11:00", "Tuesday"], "")

    def test_class_entries_group_by_class(self) -> None:
        grids = format_timetable_for_display(
            [entry("A:c1-L1", DayOfWeek.MONDAY, "P1", class_id="A")], ConstraintModel()
        )
        self.assertEqual(list(grids), ["A"])
        self.assertEqual(grids["A"].loc["P1 09:00-10:00", "Monday"], "c1 (L) T1 @ R1")

    def test_empty_timetable(self) -> None:
        self.assertEqual(format_timetable_for_display([], ConstraintModel()), {})


if __name__ == "__main__":
    unittest.main()
