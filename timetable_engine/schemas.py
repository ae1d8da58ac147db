from pydantic import BaseModel, ConfigDict, Field
from enum import Enum, IntEnum
from typing import Dict, List, Optional
from datetime import time

# Using Python's standard Enum for controlled vocabularies
class SessionType(str, Enum):
    """Enumeration for the type of a teaching session."""
    LECTURE = "Lecture"
    PRACTICAL = "Practical"
    TUTORIAL = "Tutorial"

    @property
    def code(self) -> str:
        """The single-letter code used in theory/practical descriptors."""
        return self.value[0]

class RoomType(str, Enum):
    """Enumeration for the category of a room."""
    CLASSROOM = "classroom"
    LAB = "lab"
    AUDITORIUM = "auditorium"
    SEMINAR = "seminar"

class DayOfWeek(IntEnum):
    """Enumeration for the days of the week (0 = Sunday)."""
    SUNDAY = 0
    MONDAY = 1
    TUESDAY = 2
    WEDNESDAY = 3
    THURSDAY = 4
    FRIDAY = 5
    SATURDAY = 6

class ConflictType(str, Enum):
    """Enumeration for the kind of problem a conflict report describes."""
    TEACHER_CLASH = "teacher_clash"
    ROOM_CLASH = "room_clash"
    RESOURCE_SHORTAGE = "resource_shortage"
    CONSTRAINT_VIOLATION = "constraint_violation"

class Severity(str, Enum):
    """Enumeration for how urgently a conflict needs attention."""
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

# --- Input Entities ---

class Course(BaseModel):
    """A course offering; its descriptor decides how many weekly sessions it needs."""
    model_config = ConfigDict(frozen=True)

    course_id: str = Field(description="Unique identifier for the course (e.g., 'course_1').")
    code: str = Field("", description="Human-facing course code (e.g., 'CS101').")
    name: str = Field("", description="The name of the course.")
    credits: int = Field(0, ge=0, description="Credit weight; heavier courses are placed first.")
    department: str = Field("", description="Owning department, used for lunch zones and sections.")
    semester: str = Field(description="Semester label shared by the student cohort.")
    year: int = Field(description="Academic year of the student cohort.")
    category: str = Field("core", description="Course category (core, major, minor, ...).")
    max_enrollment: int = Field(30, ge=0, description="Maximum number of enrolled students.")
    theory_practical: Optional[str] = Field(None, description="Descriptor such as '2L+1P'.")
    assigned_teacher_id: Optional[str] = Field(None, description="The teacher who delivers every session.")

class CourseSession(BaseModel):
    """One atomic teaching unit derived from a course descriptor. Never persisted."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    course_id: str
    session_type: SessionType
    duration_periods: int = Field(1, ge=1)
    requires_lab: bool = False
    group_size: int = Field(0, ge=0)
    class_id: Optional[str] = Field(None, description="Owning class on the multi-class path.")

class Teacher(BaseModel):
    """A teacher with a weekly ceiling and a free-text availability window."""
    model_config = ConfigDict(frozen=True)

    teacher_id: str
    name: str = ""
    department: str = ""
    weekly_workload: int = Field(20, ge=0, description="Weekly period ceiling for this teacher.")
    availability: Optional[str] = Field(None, description="Raw descriptor, e.g. 'Mon 9-17, Tue 9-12'.")

class Room(BaseModel):
    """Represents a physical room where sessions can be held."""
    model_config = ConfigDict(frozen=True)

    room_id: str
    name: str = ""
    room_type: RoomType = RoomType.CLASSROOM
    capacity: int = Field(ge=0)
    building: str = ""
    is_available: bool = True

class SchoolClass(BaseModel):
    """An explicit class/section entity used by institution-wide generation."""
    model_config = ConfigDict(frozen=True)

    class_id: str
    name: str = ""
    department: str = ""
    semester: int = Field(1, ge=0)
    year: int = 1
    student_count: int = Field(0, ge=0)
    course_codes: List[str] = Field(default_factory=list)

# --- Constraint Model ---

class PeriodTiming(BaseModel):
    """Wall-clock start and end of a single period."""
    start: time
    end: time

class LunchZone(BaseModel):
    """Periods kept free (mandatory) or merely discouraged (flexible)."""
    periods: List[str]
    mandatory: bool = True
    departments: List[str] = Field(default_factory=list, description="Empty means every department.")

def _default_period_timings() -> Dict[str, PeriodTiming]:
    return {
        'P1': PeriodTiming(start=time(9, 0), end=time(10, 0)),
        'P2': PeriodTiming(start=time(10, 0), end=time(11, 0)),
        'P3': PeriodTiming(start=time(11, 0), end=time(12, 0)),
        'P4': PeriodTiming(start=time(12, 0), end=time(13, 0)),
        'P5': PeriodTiming(start=time(14, 0), end=time(15, 0)),
        'P6': PeriodTiming(start=time(15, 0), end=time(16, 0)),
    }

class ConstraintModel(BaseModel):
    """Static scheduling configuration for one generation run."""
    working_days: List[DayOfWeek] = Field(
        default_factory=lambda: [DayOfWeek(d) for d in range(1, 7)],
        description="Days that can be scheduled (0 = Sunday .. 6 = Saturday)."
    )
    periods_per_day: List[str] = Field(default_factory=lambda: ['P1', 'P2', 'P3', 'P4', 'P5', 'P6'])
    period_timings: Dict[str, PeriodTiming] = Field(default_factory=_default_period_timings)
    period_duration_minutes: int = 60
    max_daily_periods_per_teacher: int = 6
    max_weekly_periods_per_teacher: int = 20
    min_daily_periods_per_section: int = 4
    max_daily_periods_per_section: int = 6
    min_gap_between_periods: int = 0
    lunch_zones: List[LunchZone] = Field(
        default_factory=lambda: [LunchZone(periods=['P4'], mandatory=False)]
    )

class GenerationOptions(BaseModel):
    """Per-run switches for the generator; accepts camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)

    optimize: bool = True
    max_resolve_attempts: int = Field(1000, ge=0, alias="maxResolveAttempts")
    max_optimize_iterations: int = Field(1000, ge=0, alias="maxOptimizeIterations")
    seed: Optional[int] = Field(None, description="Seed for the tie-breaking random source.")

# --- Models for the Generator's Output ---

def cohort_key(semester: str, year: int) -> str:
    return f"{semester}_{year}"

def section_key(department: str, semester: str, year: int) -> str:
    return f"{department}|{semester}|{year}"

class TimetableEntry(BaseModel):
    """One occupied (day, period) cell. A practical session spans two entries."""
    model_config = ConfigDict(frozen=True)

    session_id: str
    course_id: str
    teacher_id: str
    room_id: str
    day: DayOfWeek
    period: str
    session_type: SessionType
    semester: str
    year: int
    department: str = ""
    class_id: Optional[str] = None

    @property
    def slot_key(self) -> str:
        return f"{int(self.day)}|{self.period}"

    @property
    def group_key(self) -> str:
        """Students who may never be in two places at once."""
        return self.class_id or cohort_key(self.semester, self.year)

    @property
    def section_key(self) -> str:
        """The section whose daily load is kept inside the configured band."""
        return self.class_id or section_key(self.department, self.semester, self.year)

class ConflictReport(BaseModel):
    """A single problem found while generating or auditing a timetable."""
    conflict_id: str
    type: ConflictType
    severity: Severity
    title: str
    description: str
    affected_classes: List[str] = Field(default_factory=list)
    affected_slots: List[str] = Field(default_factory=list)
    suggestions: List[str] = Field(default_factory=list)

class ConflictAnalysis(BaseModel):
    """Conflict reports tallied by type and severity."""
    total_conflicts: int = 0
    critical_conflicts: int = 0
    conflicts_by_type: Dict[str, int] = Field(default_factory=dict)
    conflicts_by_severity: Dict[str, int] = Field(default_factory=dict)
    overall_score: int = 100
    recommendations: List[str] = Field(default_factory=list)

class GenerationStatistics(BaseModel):
    """Summary counts and utilization figures for one run."""
    total_sessions: int
    assigned_sessions: int
    teacher_utilization: Dict[str, float] = Field(default_factory=dict)
    room_utilization: Dict[str, float] = Field(default_factory=dict)
    objective_score: float = 0.0

class BandViolation(BaseModel):
    """A section day that falls outside the daily period band."""
    section: str
    day: DayOfWeek
    periods: int
    minimum: int
    maximum: int

class QualityReport(BaseModel):
    """Daily band check across every section in the timetable."""
    sections_checked: int = 0
    sections_out_of_band: int = 0
    violations: List[BandViolation] = Field(default_factory=list)

class GenerationResult(BaseModel):
    """The sole artifact handed to persistence, export and display collaborators."""
    model_config = ConfigDict(frozen=True)

    timetable: List[TimetableEntry]
    unassigned: List[CourseSession]
    conflicts: List[ConflictReport] = Field(default_factory=list)
    statistics: GenerationStatistics
    quality: QualityReport = Field(default_factory=QualityReport)
    conflict_analysis: Optional[ConflictAnalysis] = None

# --- A container model to hold all the loaded data ---

class TimetableInputs(BaseModel):
    """A top-level model to hold all the parsed and validated entity lists."""
    courses: List[Course] = Field(...)
    teachers: List[Teacher] = Field(...)
    rooms: List[Room] = Field(...)
    classes: List[SchoolClass] = Field(default_factory=list)
