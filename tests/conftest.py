import operator
import time
from datetime import date

import jwt
import pytest

from app import create_app
from services.habit_service import HabitService
from services.view_cache import ViewCache
from store import AuthStore, Collection, StoreError

TODAY = date(2024, 6, 1)

_OPS = {
    '=': operator.eq,
    '!=': operator.ne,
    '>': operator.gt,
    '>=': operator.ge,
    '<': operator.lt,
    '<=': operator.le,
}


def make_token(user_id, expires_in=3600):
    payload = {'id': user_id, 'type': 'authRecord', 'exp': int(time.time()) + expires_in}
    return jwt.encode(payload, 'test-secret', algorithm='HS256')


class FakeBackend:
    """In-memory stand-in for the record store, shared by every client it hands out."""

    def __init__(self):
        self.collections = {'habits': {}, 'entries': {}}
        self.users = {}
        self.calls = []
        self.failures = {}
        self._seq = 0

    def _next(self):
        self._seq += 1
        return self._seq

    def add_user(self, identity, password, user_id):
        record = {'id': user_id, 'email': identity, 'username': identity.split('@')[0], 'name': ''}
        self.users[identity] = (password, record)
        return record

    def insert(self, collection, **fields):
        n = self._next()
        record = {'id': fields.pop('id', f'{collection[:1]}{n}'),
                  'created': f'2024-01-01 00:00:00.{n:06d}Z', 'updated': ''}
        record.update(fields)
        self.collections[collection][record['id']] = record
        return record

    def fail(self, method, collection, status=500, after=0):
        """Make the (after+1)-th and later `method` calls on `collection` raise."""
        self.failures[(method, collection)] = [after, status]

    def check(self, method, collection):
        self.calls.append((method, collection))
        rule = self.failures.get((method, collection))
        if rule is None:
            return
        if rule[0] > 0:
            rule[0] -= 1
            return
        raise StoreError(rule[1], 'injected failure')

    def client(self, auth_store=None):
        return FakeStore(self, auth_store or AuthStore())

    def client_for(self, user, expires_in=3600):
        return self.client(AuthStore(make_token(user['id'], expires_in), user))

    def client_factory(self, base_url, auth_store=None, timeout=None, auth_collection='users'):
        return self.client(auth_store)


def _matches(record, conditions):
    for cond in conditions or []:
        value = record.get(cond.field)
        if value is None:
            return False
        if not _OPS[cond.op](value, cond.value):
            return False
    return True


class FakeCollection(Collection):
    @property
    def backend(self):
        return self.client.backend

    @property
    def records(self):
        return self.backend.collections.setdefault(self.name, {})

    def _visible(self, record):
        # store api rules: owner = @request.auth.id, foreign records look missing
        return record.get('owner') in (None, self.client.auth_store.user_id)

    def get_list(self, page=1, per_page=30, filter=None, sort=None, expand=None):
        assert not isinstance(filter, str), 'services must build filters from conditions'
        self.backend.check('list', self.name)
        items = [dict(r) for r in self.records.values() if _matches(r, filter)]
        if sort:
            field = sort.lstrip('-')
            items.sort(key=lambda r: r.get(field, ''), reverse=sort.startswith('-'))
        if expand == 'habit':
            habits = self.backend.collections['habits']
            for item in items:
                if item.get('habit') in habits:
                    item['expand'] = {'habit': dict(habits[item['habit']])}
        total_pages = (len(items) + per_page - 1) // per_page
        start = (page - 1) * per_page
        return {'page': page, 'perPage': per_page, 'totalItems': len(items),
                'totalPages': total_pages, 'items': items[start:start + per_page]}

    def create(self, data):
        self.backend.check('create', self.name)
        return dict(self.backend.insert(self.name, **data))

    def update(self, record_id, data):
        self.backend.check('update', self.name)
        if record_id not in self.records or not self._visible(self.records[record_id]):
            raise StoreError(404, 'The requested resource wasn\'t found.')
        self.records[record_id].update(data)
        return dict(self.records[record_id])

    def delete(self, record_id):
        self.backend.check('delete', self.name)
        if record_id not in self.records or not self._visible(self.records[record_id]):
            raise StoreError(404, 'The requested resource wasn\'t found.')
        del self.records[record_id]
        return True


class FakeStore:
    def __init__(self, backend, auth_store):
        self.backend = backend
        self.auth_store = auth_store
        self.closed = False

    def collection(self, name):
        return FakeCollection(self, name)

    def auth_with_password(self, identity, password):
        self.backend.check('auth', 'users')
        stored = self.backend.users.get(identity)
        if stored is None or stored[0] != password:
            raise StoreError(400, 'Failed to authenticate.')
        token = make_token(stored[1]['id'])
        self.auth_store.save(token, stored[1])
        return {'token': token, 'record': stored[1]}

    def close(self):
        self.closed = True


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def user(backend):
    return backend.add_user('tester@example.com', 'password', 'user1')


@pytest.fixture
def other_user(backend):
    return backend.add_user('other@example.com', 'password', 'user2')


@pytest.fixture
def cache():
    return ViewCache(ttl=60)


@pytest.fixture
def service(backend, user, cache):
    return HabitService(backend.client_for(user), cache, today=TODAY)


@pytest.fixture
def anon_service(backend, cache):
    return HabitService(backend.client(), cache, today=TODAY)


@pytest.fixture
def app(backend):
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'WTF_CSRF_ENABLED': False,
        'STORE_FACTORY': backend.client_factory,
    })
    return app


@pytest.fixture
def client(app):
    with app.test_client() as client:
        yield client


@pytest.fixture
def auth_client(client, user):
    auth_store = AuthStore(make_token(user['id']), user)
    client.set_cookie('pb_auth', auth_store.export_cookie_value())
    return client, user
