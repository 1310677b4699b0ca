"""Plain-text accountability report for the current discipline day.

The report is a pure function of a store snapshot and the instant it is
generated at; the caller decides where the text goes.
"""

from datetime import datetime

from src.core.clock import current_day_id, format_local_time
from src.domain.state import StoreSnapshot
from src.domain.task import TASK_DEFINITIONS


MOOD_LABELS: dict[int, str] = {
    0: "NOT SET",
    1: "DEPLETED",
    2: "LOW",
    3: "NEUTRAL",
    4: "CHARGED",
    5: "PEAK",
}

_RULE = "═" * 60
_DIVIDER = "─" * 60


def _section(lines: list[str], title: str) -> None:
    lines.extend([_DIVIDER, f"  {title}", _DIVIDER])


def _task_line(done: bool, label: str, duration: str) -> str:
    marker = "[✓]" if done else "[ ]"
    return f"  {marker}  {label:<30} {duration}"


def report_filename(day_id: str) -> str:
    """File name the report should be saved under."""
    return f"grindos-report-{day_id}.txt"


def generate_daily_report(snapshot: StoreSnapshot, now: datetime) -> str:
    """Render the daily report.

    Args:
        snapshot: Consistent store snapshot
        now: Local wall-clock instant the report is generated at

    Returns:
        Report text (newline separated, trailing newline)
    """
    day_id = current_day_id(now)
    lines: list[str] = [
        _RULE,
        "  GRINDOS — DAILY ACCOUNTABILITY REPORT",
        _RULE,
        "",
        f"  DISCIPLINE DAY : {day_id}",
        f"  GENERATED AT  : {now.strftime('%Y-%m-%d %H:%M:%S')}",
        f"  STREAK        : {snapshot.streak} consecutive days",
        "",
    ]

    _section(lines, "PROTOCOL")
    mood = snapshot.daily_moods.get(day_id, 0)
    lines.append(f"  INITIATED AT  : {format_local_time(snapshot.protocol_start_time)}")
    lines.append(f"  ENERGY LEVEL  : {mood}/5 — {MOOD_LABELS.get(mood, MOOD_LABELS[0])}")
    lines.append(f"  OBJECTIVE     : {snapshot.daily_intents.get(day_id, '—')}")
    lines.append("")

    _section(lines, "BUILT-IN TASKS")
    builtin_done = 0
    for task in TASK_DEFINITIONS:
        done = snapshot.tasks.get(task.id, False)
        builtin_done += done
        lines.append(_task_line(done, task.label, task.duration))
    lines.append("")

    custom_done = 0
    if snapshot.custom_tasks:
        _section(lines, "CUSTOM TASKS")
        for custom in snapshot.custom_tasks:
            done = snapshot.custom_task_completions.get(custom.id, False)
            custom_done += done
            lines.append(_task_line(done, custom.label, custom.duration))
        lines.append("")
        lines.append(f"  CUSTOM: {custom_done}/{len(snapshot.custom_tasks)} completed")
        lines.append("")

    total_tasks = len(TASK_DEFINITIONS) + len(snapshot.custom_tasks)
    total_done = builtin_done + custom_done
    _section(lines, "SUMMARY")
    lines.append(f"  TASKS COMPLETE : {total_done}/{total_tasks}")
    lines.append(f"  DAY STATUS     : {'✓ COMPLETE' if total_done == total_tasks else 'INCOMPLETE'}")
    lines.append("")

    _section(lines, "FAILURE LOG")
    failures = [event for event in snapshot.failure_history if event.discipline_day == day_id]
    if not failures:
        lines.append("  NO FAILURES LOGGED TODAY")
    for index, event in enumerate(failures, start=1):
        lines.append(f"  FAILURE {index:02d} : {format_local_time(event.timestamp)}")
    lines.append("")

    lines.extend([_RULE, "  NO COMFORT. NO COMPROMISE. NO EXCEPTIONS.", _RULE, ""])
    return "\n".join(lines)
