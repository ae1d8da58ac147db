import pandas as pd
from timetable_engine.schemas import ConstraintModel, DayOfWeek, TimetableEntry
from typing import Dict, Iterable, Mapping, Optional

# Short marker appended to each cell so the session kind is readable in the grid
SESSION_MARKERS = {
    "Lecture": "L",
    "Practical": "P",
    "Tutorial": "T",
}

def format_timetable_for_display(
    timetable: Iterable[TimetableEntry],
    constraints: ConstraintModel,
    course_names: Optional[Mapping[str, str]] = None,
) -> Dict[str, pd.DataFrame]:
    """
    Transforms the flat timetable from the generator into a dictionary of pivot
    tables (grids), one per section: periods as rows, working days as columns.
    """
    course_names = course_names or {}
    processed_data = []
    for entry in timetable:
        course_label = course_names.get(entry.course_id, entry.course_id)
        cell_content = (
            f"{course_label} ({SESSION_MARKERS[entry.session_type.value]}) "
            f"{entry.teacher_id} @ {entry.room_id}"
        )
        timing = constraints.period_timings.get(entry.period)
        record = {
            "section": entry.section_key,
            "day": DayOfWeek(entry.day).name.title(),
            "time_str": (
                f"{entry.period} {timing.start.strftime('%H:%M')}-{timing.end.strftime('%H:%M')}"
                if timing else entry.period
            ),
            "content": cell_content,
        }
        processed_data.append(record)

    if not processed_data:
        return {}

    df = pd.DataFrame(processed_data).drop_duplicates()

    time_order = []
    for period in constraints.periods_per_day:
        timing = constraints.period_timings.get(period)
        time_order.append(
            f"{period} {timing.start.strftime('%H:%M')}-{timing.end.strftime('%H:%M')}" if timing else period
        )
    df['time_str'] = pd.Categorical(df['time_str'], categories=time_order, ordered=True)

    day_order = [DayOfWeek(day).name.title() for day in constraints.working_days]

    section_timetables = {}
    for section, section_df in df.groupby('section'):
        pivot_table = section_df.pivot_table(
            index='time_str',
            columns='day',
            values='content',
            aggfunc='first',
            observed=False
        ).fillna('')
        pivot_table = pivot_table.reindex(index=time_order, columns=day_order).fillna('')

        section_timetables[section] = pivot_table

    return section_timetables
