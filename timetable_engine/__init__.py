from timetable_engine.errors import (
    InvalidConstraints, NoCourses, NoRooms, NoTeachers, TimetableGenerationError
)
from timetable_engine.generator import TimetableGenerator
from timetable_engine.multi_class import MultiClassGenerator
from timetable_engine.schemas import (
    ConstraintModel, Course, GenerationOptions, GenerationResult, Room, SchoolClass, Teacher
)

__version__ = "0.1.0"

__all__ = [
    "ConstraintModel",
    "Course",
    "GenerationOptions",
    "GenerationResult",
    "InvalidConstraints",
    "MultiClassGenerator",
    "NoCourses",
    "NoRooms",
    "NoTeachers",
    "Room",
    "SchoolClass",
    "Teacher",
    "TimetableGenerationError",
    "TimetableGenerator",
]
