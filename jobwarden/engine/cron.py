"""
Quartz-style cron expressions on top of APScheduler's CronTrigger.

Format: `sec min hour day-of-month month day-of-week [year]`

- `?` means "no constraint" (day-of-month / day-of-week only)
- day-of-week numbers run 1=SUN .. 7=SAT; names SUN..SAT are accepted
- `L` in day-of-month is the last day of the month
- `nL` / `n#k` in day-of-week are the last / k-th weekday n of the month
- `W`, `LW` and `L-n` are not supported
"""

from datetime import UTC, datetime, tzinfo

from apscheduler.triggers.cron import CronTrigger

WEEKDAY_NAMES = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]
ORDINALS = {1: "1st", 2: "2nd", 3: "3rd", 4: "4th", 5: "5th"}


def _weekday_index(token: str) -> int:
    """Quartz weekday token (1-7 or SUN-SAT) to a 0-based index from Sunday."""
    token = token.strip().lower()
    if token.isdigit():
        value = int(token)
        if not 1 <= value <= 7:
            raise ValueError(f"Day-of-week value out of range (1-7): {token}")
        return value - 1
    if token[:3] in WEEKDAY_NAMES and len(token) == 3:
        return WEEKDAY_NAMES.index(token)
    raise ValueError(f"Invalid day-of-week value: {token}")


def _expand_weekdays(part: str) -> list[str]:
    """Expand one comma-separated day-of-week item into weekday names."""
    base, _, step_text = part.partition("/")
    step = int(step_text) if step_text else 1
    if step < 1:
        raise ValueError(f"Invalid day-of-week step: {part}")

    if base == "*":
        first, last = 0, 6
    elif "-" in base:
        left, right = base.split("-", 1)
        first, last = _weekday_index(left), _weekday_index(right)
    else:
        first = _weekday_index(base)
        last = 6 if step_text else first

    span = (last - first) % 7
    return [WEEKDAY_NAMES[(first + offset) % 7] for offset in range(0, span + 1, step)]


def _convert_day_of_week(field: str) -> tuple[str | None, str | None]:
    """
    Translate a Quartz day-of-week field.

    Returns:
        (day_of_week, day) for CronTrigger; `day` is set for `nL` / `n#k`
    """
    field = field.strip()
    if field in ("?", "*"):
        return None, None

    upper = field.upper()
    if upper == "L":
        return "sat", None
    if upper.endswith("L") and "," not in upper:
        name = WEEKDAY_NAMES[_weekday_index(upper[:-1])]
        return None, f"last {name}"
    if "#" in upper:
        weekday, _, nth = upper.partition("#")
        if not nth.isdigit() or int(nth) not in ORDINALS:
            raise ValueError(f"Invalid nth weekday in day-of-week: {field}")
        name = WEEKDAY_NAMES[_weekday_index(weekday)]
        return None, f"{ORDINALS[int(nth)]} {name}"

    names: list[str] = []
    for part in upper.split(","):
        for name in _expand_weekdays(part):
            if name not in names:
                names.append(name)
    return ",".join(names), None


def _convert_day_of_month(field: str) -> str | None:
    field = field.strip()
    if field in ("?", "*"):
        return None
    upper = field.upper()
    if "W" in upper or upper.startswith("L-"):
        raise ValueError(f"Unsupported day-of-month expression: {field}")
    if upper == "L":
        return "last"
    return field


def parse_cron(
    expression: str,
    start_time: datetime | None = None,
    end_time: datetime | None = None,
    timezone: str | tzinfo = UTC,
) -> CronTrigger:
    """
    Build a CronTrigger from a Quartz cron expression.

    Args:
        expression: 6 or 7 whitespace-separated fields
        start_time: Earliest fire time (naive values are taken as UTC)
        end_time: Latest fire time (naive values are taken as UTC)
        timezone: Timezone the fields are evaluated in

    Raises:
        ValueError: If the expression is malformed or uses unsupported syntax
    """
    if not expression or not expression.strip():
        raise ValueError("Cron expression is empty")

    fields = expression.split()
    if len(fields) not in (6, 7):
        raise ValueError(
            f"Cron expression must have 6 or 7 fields, got {len(fields)}: {expression!r}"
        )

    second, minute, hour, dom, month, dow = fields[:6]
    year = fields[6] if len(fields) == 7 else None

    for name, value in (("second", second), ("minute", minute), ("hour", hour), ("month", month)):
        if "?" in value:
            raise ValueError(f"'?' is only allowed in day-of-month and day-of-week ({name})")

    day = _convert_day_of_month(dom)
    day_of_week, weekday_day = _convert_day_of_week(dow)
    if weekday_day is not None:
        if day is not None:
            raise ValueError("Day-of-month must be '?' when day-of-week uses 'L' or '#'")
        day = weekday_day

    if year is not None and year.strip() in ("*", "?"):
        year = None

    return CronTrigger(
        year=year,
        month=month,
        day=day,
        day_of_week=day_of_week,
        hour=hour,
        minute=minute,
        second=second,
        start_date=_as_utc(start_time),
        end_date=_as_utc(end_time),
        timezone=timezone,
    )


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def validate_cron(expression: str) -> str | None:
    """Return an error message if the expression cannot be used, else None."""
    try:
        trigger = parse_cron(expression)
    except (ValueError, TypeError) as e:
        return f"Invalid cron expression: {e}"

    if trigger.get_next_fire_time(None, datetime.now(UTC)) is None:
        return "Cron expression will never fire"
    return None


def get_next_fire_times(
    expression: str,
    count: int = 5,
    timezone: str | tzinfo = UTC,
    now: datetime | None = None,
) -> list[datetime]:
    """Preview the next `count` fire times (timezone-aware)."""
    trigger = parse_cron(expression, timezone=timezone)
    current = now or datetime.now(UTC)
    previous: datetime | None = None
    times: list[datetime] = []

    while len(times) < count:
        next_time = trigger.get_next_fire_time(previous, current)
        if next_time is None:
            break
        times.append(next_time)
        previous = current = next_time

    return times
