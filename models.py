from dataclasses import dataclass, field
from typing import Optional

from flask_login import UserMixin

DEFAULT_COLOR = '#22c55e'


def _date_key(raw):
    # the store returns date fields as "2024-01-01 00:00:00.000Z"
    return (raw or '')[:10]


def _number(raw, default=1):
    if raw is None or raw == '':
        return default
    value = float(raw)
    return int(value) if value.is_integer() else value


class User(UserMixin):
    def __init__(self, record):
        self.record = record or {}
        self.id = self.record.get('id')
        self.email = self.record.get('email', '')
        self.username = self.record.get('username', '')
        self.name = self.record.get('name', '')

    @property
    def display_name(self):
        return self.name or self.username or self.email or self.id


@dataclass
class Habit:
    id: str
    name: str
    color: str = DEFAULT_COLOR
    owner: str = ''
    created: str = ''
    updated: str = ''

    @classmethod
    def from_record(cls, record):
        return cls(
            id=record['id'],
            name=record.get('name', ''),
            color=record.get('color') or DEFAULT_COLOR,
            owner=record.get('owner', ''),
            created=record.get('created', ''),
            updated=record.get('updated', ''),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'color': self.color,
            'owner': self.owner,
            'created': self.created,
            'updated': self.updated,
        }


@dataclass
class Entry:
    id: str
    habit: str
    date: str
    value: float = 1
    owner: str = ''
    expanded_habit: Optional[Habit] = field(default=None, repr=False)

    @classmethod
    def from_record(cls, record):
        expanded = (record.get('expand') or {}).get('habit')
        return cls(
            id=record['id'],
            habit=record.get('habit', ''),
            date=_date_key(record.get('date')),
            value=_number(record.get('value')),
            owner=record.get('owner', ''),
            expanded_habit=Habit.from_record(expanded) if expanded else None,
        )

    def to_dict(self):
        data = {
            'id': self.id,
            'habit': self.habit,
            'date': self.date,
            'value': self.value,
            'owner': self.owner,
        }
        if self.expanded_habit is not None:
            data['expand'] = {'habit': self.expanded_habit.to_dict()}
        return data
