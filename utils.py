from datetime import datetime, timedelta, timezone

WINDOW_DAYS = 370
DATE_KEY_FORMAT = '%Y-%m-%d'


def as_utc_date(value):
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def start_of_today():
    now = datetime.now(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def today_utc():
    return start_of_today().date()


def to_date_key(value):
    return as_utc_date(value).strftime(DATE_KEY_FORMAT)


def parse_date_key(key):
    # strptime accepts unpadded parts ("2024-1-1"), keys must be canonical
    parsed = datetime.strptime(key, DATE_KEY_FORMAT).date()
    if parsed.strftime(DATE_KEY_FORMAT) != key:
        raise ValueError(f'not a canonical date key: {key!r}')
    return parsed


def last_370_days(today=None):
    today = as_utc_date(today) if today else today_utc()
    return [today - timedelta(days=i) for i in range(WINDOW_DAYS - 1, -1, -1)]


def days_ago(value, today=None):
    today = as_utc_date(today) if today else today_utc()
    return (today - as_utc_date(value)).days


def in_window(value, today=None):
    return 0 <= days_ago(value, today) < WINDOW_DAYS


def week_index(value, today=None):
    # 52 for today, 0 for the oldest day of the window
    return (WINDOW_DAYS - 1 - days_ago(value, today)) // 7


def weekday_index(value):
    # Monday first, Sunday is 6
    return as_utc_date(value).weekday()


def format_long_date(value):
    d = as_utc_date(value)
    return f"{d.strftime('%A')}, {d.strftime('%B')} {d.day}, {d.year}"


def format_count(count):
    if not count:
        return 'No entries'
    if count == 1:
        return '1 entry'
    return f'{count:g} entries'
