class TimetableGenerationError(ValueError):
    """
    Base class for malformed generation input, raised before any placement.
    Placement shortfalls are never raised; they come back in the GenerationResult.
    """

    kind = "GenerationError"

class NoCourses(TimetableGenerationError):
    kind = "NoCourses"

class NoTeachers(TimetableGenerationError):
    kind = "NoTeachers"

class NoRooms(TimetableGenerationError):
    kind = "NoRooms"

class InvalidConstraints(TimetableGenerationError):
    kind = "InvalidConstraints"
