"""Habit and entry actions against the record store.

Every public method returns an envelope, either {'success': True, 'data': ...}
or {'success': False, 'error': <message>, 'kind': <kind>}. Nothing raises
past the method boundary.

Known races, accepted for this app:
  - toggle_entry reads then writes. Two concurrent toggles on one cell can
    both see "absent" and create two entries (the next toggle removes both),
    or both delete. A unique index on entries(habit, date) in the store turns
    the duplicate create into an UpstreamFailure.
  - delete_habit deletes entries one by one and then the habit. A failure
    part-way leaves the habit with fewer entries; calling it again finishes
    the job.
"""
import functools
import logging
import re
from datetime import timedelta

from errors import ActionError, InvalidInput, NotAuthenticated, NotFound, UpstreamFailure, from_store_error
from models import DEFAULT_COLOR, Entry, Habit
from store import StoreError, eq, gte, lt
from utils import last_370_days, parse_date_key, to_date_key, today_utc

logger = logging.getLogger(__name__)

HABITS = 'habits'
ENTRIES = 'entries'
COLOR_RE = re.compile(r'^#(?:[0-9a-fA-F]{3}){1,2}$')
NAME_MAX_LENGTH = 100


def ok(data=None):
    return {'success': True, 'data': data}


def fail(kind, message):
    return {'success': False, 'error': message, 'kind': kind}


def action(message):
    def decorator(f):
        @functools.wraps(f)
        def wrapper(self, *args, **kwargs):
            try:
                self._require_auth()
                try:
                    return ok(f(self, *args, **kwargs))
                except StoreError as e:
                    raise from_store_error(e) from e
            except NotAuthenticated:
                logger.warning('%s rejected: not authenticated', f.__name__)
                return fail(NotAuthenticated.kind, 'Not authenticated')
            except InvalidInput as e:
                logger.info('%s rejected: %s', f.__name__, e.message)
                return fail(e.kind, e.message)
            except ActionError as e:
                logger.warning('%s failed (%s): %s', f.__name__, e.kind, e.message)
                return fail(e.kind, message)
            except Exception:
                logger.exception('%s failed', f.__name__)
                return fail(UpstreamFailure.kind, message)
        return wrapper
    return decorator


def _parse_day(value):
    try:
        return parse_date_key(value)
    except (TypeError, ValueError):
        raise InvalidInput(f'Invalid date: {value!r}')


def _on_day(day):
    # half-open range so both "2024-01-01" and "2024-01-01 00:00:00.000Z" match
    return _between(day, day)


def _between(start, end):
    return [gte('date', to_date_key(start)),
            lt('date', to_date_key(end + timedelta(days=1)))]


def _clean_name(name):
    name = (name or '').strip()
    if not name:
        raise InvalidInput('Habit name is required')
    if len(name) > NAME_MAX_LENGTH:
        raise InvalidInput(f'Habit name must be at most {NAME_MAX_LENGTH} characters')
    return name


def _clean_color(color):
    color = (color or '').strip()
    if not COLOR_RE.match(color):
        raise InvalidInput('Color must be a hex value like #22c55e')
    return color.lower()


def sum_by_date(entries):
    totals = {}
    for entry in entries:
        totals[entry.date] = totals.get(entry.date, 0) + entry.value
    return totals


class HabitService:
    def __init__(self, store, cache=None, today=None):
        self.store = store
        self.cache = cache
        self.today = today

    @property
    def owner(self):
        return self.store.auth_store.user_id

    def _require_auth(self):
        if not self.store.auth_store.is_valid or not self.owner:
            raise NotAuthenticated()

    def _today(self):
        return self.today or today_utc()

    def _invalidate(self):
        if self.cache is not None:
            self.cache.invalidate(self.owner)

    def _cached(self, key, load):
        if self.cache is None:
            return load()
        # entries are per token, a forged token for the same owner always misses
        key = f'{self.store.auth_store.fingerprint}:{key}'
        value = self.cache.get(self.owner, key)
        if value is None:
            value = load()
            self.cache.set(self.owner, key, value)
        return value

    def _owned_habit(self, habit_id):
        if not habit_id:
            raise InvalidInput('Habit id is required')
        record = self.store.collection(HABITS).get_first([eq('id', habit_id), eq('owner', self.owner)])
        if record is None:
            raise NotFound(f'habit {habit_id} not found')
        return Habit.from_record(record)

    def _entries(self, conditions, **kwargs):
        records = self.store.collection(ENTRIES).get_full_list(
            filter=[eq('owner', self.owner)] + conditions, **kwargs)
        return [Entry.from_record(r) for r in records]

    def _delete_entries(self, entries):
        collection = self.store.collection(ENTRIES)
        deleted = 0
        for entry in entries:
            try:
                collection.delete(entry.id)
            except StoreError as e:
                if e.status != 404:
                    raise
            deleted += 1
        return deleted

    @action('Failed to create habit')
    def create_habit(self, name, color=DEFAULT_COLOR):
        data = {
            'name': _clean_name(name),
            'color': _clean_color(color or DEFAULT_COLOR),
            'owner': self.owner,
        }
        record = self.store.collection(HABITS).create(data)
        self._invalidate()
        logger.info('created habit %s for %s', record.get('id'), self.owner)
        return Habit.from_record(record).to_dict()

    @action('Failed to update habit')
    def update_habit(self, habit_id, fields):
        fields = fields or {}
        data = {}
        if 'name' in fields:
            data['name'] = _clean_name(fields['name'])
        if 'color' in fields:
            data['color'] = _clean_color(fields['color'])
        if not habit_id:
            raise InvalidInput('Habit id is required')
        if not data:
            raise InvalidInput('Nothing to update')
        record = self.store.collection(HABITS).update(habit_id, data)
        self._invalidate()
        return Habit.from_record(record).to_dict()

    @action('Failed to delete habit')
    def delete_habit(self, habit_id):
        habit = self._owned_habit(habit_id)
        deleted = 0
        try:
            # entries first, so a failure never leaves entries without a habit
            deleted = self._delete_entries(self._entries([eq('habit', habit.id)]))
            try:
                self.store.collection(HABITS).delete(habit.id)
            except StoreError as e:
                if e.status != 404:
                    raise
        finally:
            self._invalidate()
        logger.info('deleted habit %s with %d entries', habit.id, deleted)
        return {'id': habit.id, 'deleted_entries': deleted}

    @action('Failed to toggle entry')
    def toggle_entry(self, habit_id, date_key):
        day = _parse_day(date_key)
        if not habit_id:
            raise InvalidInput('Habit id is required')
        key = to_date_key(day)

        existing = self._entries([eq('habit', habit_id)] + _on_day(day))
        if existing:
            # more than one means an earlier race, remove them all
            self._delete_entries(existing)
            self._invalidate()
            return {'habit': habit_id, 'date': key, 'done': False}

        habit = self._owned_habit(habit_id)
        record = self.store.collection(ENTRIES).create({
            'habit': habit.id,
            'date': key,
            'value': 1,
            'owner': self.owner,
        })
        self._invalidate()
        return {'habit': habit.id, 'date': key, 'done': True, 'entry': Entry.from_record(record).to_dict()}

    @action('Failed to get entries')
    def get_range(self, start, end):
        start_day, end_day = _parse_day(start), _parse_day(end)
        if start_day > end_day:
            raise InvalidInput('Start date must be on or before end date')
        entries = self._entries(_between(start_day, end_day), sort='date', expand='habit')
        return [e.to_dict() for e in entries]

    @action('Failed to get habits')
    def get_habits(self):
        def load():
            records = self.store.collection(HABITS).get_full_list(
                filter=[eq('owner', self.owner)], sort='-created')
            return [Habit.from_record(r).to_dict() for r in records]

        return self._cached('habits', load)

    @action('Failed to get entries')
    def get_year_summary(self):
        days = last_370_days(self._today())
        return self._cached(f'summary:{to_date_key(days[-1])}',
                            lambda: sum_by_date(self._entries(_between(days[0], days[-1]))))

    @action('Failed to get entries')
    def get_habit_summary(self, habit_id):
        if not habit_id:
            raise InvalidInput('Habit id is required')
        days = last_370_days(self._today())
        return self._cached(f'habit:{habit_id}:{to_date_key(days[-1])}',
                            lambda: sum_by_date(self._entries([eq('habit', habit_id)] + _between(days[0], days[-1]))))
