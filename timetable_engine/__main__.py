"""
Command line entry point:

    python -m timetable_engine Tables.xlsx --seed 7 --output result.json

Loads the workbook, runs the cohort generator (or the institution-wide one
with --multi-class) and prints one grid per section.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from timetable_engine.data_loader import load_timetable_inputs_from_excel
from timetable_engine.display_utils import format_timetable_for_display
from timetable_engine.errors import TimetableGenerationError
from timetable_engine.generator import TimetableGenerator
from timetable_engine.multi_class import MultiClassGenerator
from timetable_engine.schemas import ConstraintModel, GenerationOptions, GenerationResult

logger = logging.getLogger("timetable_engine")

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="timetable_engine", description="Automated Timetable Generator")
    parser.add_argument("workbook", type=str, help="Excel file with Courses, Teachers, Rooms (and Classes) sheets")
    parser.add_argument("--constraints", type=str, help="JSON file with the constraint model")
    parser.add_argument("--multi-class", action="store_true", help="Generate per explicit class (Classes sheet)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible tie-breaking")
    parser.add_argument("--no-optimize", action="store_true", help="Skip the local search phase")
    parser.add_argument("--max-resolve-attempts", type=int, default=1000)
    parser.add_argument("--max-iterations", type=int, default=1000, help="Local search iterations")
    parser.add_argument("--output", type=str, help="Write the full result as JSON to this file")
    parser.add_argument("--verbose", action="store_true", help="Log every placement decision")
    return parser

def _load_constraints(path: Optional[str]) -> ConstraintModel:
    if not path:
        return ConstraintModel()
    return ConstraintModel.model_validate_json(Path(path).read_text(encoding="utf-8"))

def _print_result(result: GenerationResult, constraints: ConstraintModel, course_names: dict) -> None:
    stats = result.statistics
    print(f"Assigned {stats.assigned_sessions}/{stats.total_sessions} sessions "
          f"(objective {stats.objective_score:.1f})")

    for section, grid in format_timetable_for_display(result.timetable, constraints, course_names).items():
        print(f"\n=== {section} ===")
        print(grid.to_string())

    if result.unassigned:
        print(f"\nUnassigned sessions ({len(result.unassigned)}):")
        for session in result.unassigned:
            print(f"- {session.session_id} ({session.session_type.value})")
    for report in result.conflicts:
        print(f"[{report.severity.value}] {report.title}: {report.description}")

def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        inputs = load_timetable_inputs_from_excel(args.workbook)
        constraints = _load_constraints(args.constraints)
        options = GenerationOptions(
            optimize=not args.no_optimize,
            max_resolve_attempts=args.max_resolve_attempts,
            max_optimize_iterations=args.max_iterations,
            seed=args.seed,
        )
        if args.multi_class:
            generator = MultiClassGenerator(
                inputs.classes, inputs.courses, inputs.teachers, inputs.rooms, constraints
            )
        else:
            generator = TimetableGenerator(inputs.courses, inputs.teachers, inputs.rooms, constraints)
        result = generator.generate(options)
    except FileNotFoundError as e:
        logger.error("%s", e)
        return 1
    except TimetableGenerationError as e:
        logger.error("Generation refused (%s): %s", e.kind, e)
        return 2
    except ValueError as e:
        logger.error("%s", e)
        return 1

    course_names = {course.course_id: course.code or course.name or course.course_id for course in inputs.courses}
    _print_result(result, constraints, course_names)

    if args.output:
        Path(args.output).write_text(result.model_dump_json(indent=2), encoding="utf-8")
        logger.info("Result written to %s", args.output)
    return 0

if __name__ == "__main__":
    sys.exit(main())
