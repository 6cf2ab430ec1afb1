"""Client for the PocketBase-style record store that owns persistence and auth.

Only the slice of the REST surface this app needs is covered: paginated
record listing with filter/sort/expand, single record CRUD and password
authentication against an auth collection.
"""
import hashlib
import json
import logging
import re
import time
from collections import namedtuple
from datetime import date, datetime, timezone
from urllib.parse import quote, unquote

import jwt
import requests

logger = logging.getLogger(__name__)

DEFAULT_URL = 'http://127.0.0.1:8090'
DEFAULT_TIMEOUT = 10
MAX_PER_PAGE = 500


class StoreError(Exception):
    def __init__(self, status, message, data=None, url=None):
        super().__init__(f'{status}: {message}')
        self.status = status
        self.message = message
        self.data = data or {}
        self.url = url


# Filters

Condition = namedtuple('Condition', ['field', 'op', 'value'])

OPERATORS = ('=', '!=', '>', '>=', '<', '<=', '~', '!~')
_FIELD_RE = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*(\.[A-Za-z_][A-Za-z0-9_]*)*$')


def eq(field, value):
    return Condition(field, '=', value)


def gte(field, value):
    return Condition(field, '>=', value)


def lt(field, value):
    return Condition(field, '<', value)


def lte(field, value):
    return Condition(field, '<=', value)


def literal(value):
    """Render a Python value as a filter literal, escaping strings."""
    if value is None:
        return 'null'
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, datetime):
        value = value.strftime('%Y-%m-%d %H:%M:%S.000Z')
    elif isinstance(value, date):
        value = value.isoformat()
    text = str(value).replace('\\', '\\\\').replace("'", "\\'")
    return f"'{text}'"


def render_filter(conditions):
    if isinstance(conditions, str):
        return conditions
    parts = []
    for cond in conditions:
        if not _FIELD_RE.match(cond.field):
            raise ValueError(f'invalid filter field: {cond.field!r}')
        if cond.op not in OPERATORS:
            raise ValueError(f'invalid filter operator: {cond.op!r}')
        parts.append(f'{cond.field} {cond.op} {literal(cond.value)}')
    return ' && '.join(parts)


# Auth

def token_payload(token):
    if not token:
        return {}
    try:
        return jwt.decode(token, options={'verify_signature': False})
    except jwt.PyJWTError:
        return {}


class AuthStore:
    """Holds the store-issued token and the authenticated user record."""

    def __init__(self, token='', model=None):
        self.token = token or ''
        self.model = model

    @property
    def is_valid(self):
        payload = token_payload(self.token)
        if not payload:
            return False
        exp = payload.get('exp')
        return exp is None or exp > time.time()

    @property
    def user_id(self):
        # identity comes from the token, the cookie model is display data only
        return token_payload(self.token).get('id')

    @property
    def fingerprint(self):
        return hashlib.sha256(self.token.encode()).hexdigest()[:16] if self.token else ''

    @property
    def expires_at(self):
        exp = token_payload(self.token).get('exp')
        return datetime.fromtimestamp(exp, timezone.utc) if exp else None

    def save(self, token, model=None):
        self.token = token or ''
        self.model = model

    def clear(self):
        self.token = ''
        self.model = None

    def export_cookie_value(self):
        return quote(json.dumps({'token': self.token, 'model': self.model}, separators=(',', ':')))

    @classmethod
    def from_cookie_value(cls, raw):
        if not raw:
            return cls()
        try:
            data = json.loads(unquote(raw))
        except ValueError:
            return cls()
        if not isinstance(data, dict):
            return cls()
        model = data.get('model')
        auth_store = cls(data.get('token') or '', model if isinstance(model, dict) else None)
        if auth_store.model is not None and auth_store.model.get('id') != auth_store.user_id:
            return cls()
        return auth_store


# Client

class Collection:
    def __init__(self, client, name):
        self.client = client
        self.name = name

    @property
    def path(self):
        return f'/api/collections/{quote(self.name, safe="")}/records'

    def get_list(self, page=1, per_page=30, filter=None, sort=None, expand=None):
        params = {'page': page, 'perPage': per_page}
        if filter:
            params['filter'] = render_filter(filter)
        if sort:
            params['sort'] = sort
        if expand:
            params['expand'] = expand
        return self.client.send('GET', self.path, params=params)

    def get_full_list(self, batch=MAX_PER_PAGE, **kwargs):
        items = []
        page = 1
        while True:
            result = self.get_list(page=page, per_page=batch, **kwargs)
            page_items = result.get('items') or []
            items.extend(page_items)
            total_pages = result.get('totalPages') or 0
            if len(page_items) < batch or page >= total_pages:
                return items
            page += 1

    def get_first(self, filter, **kwargs):
        items = self.get_list(page=1, per_page=1, filter=filter, **kwargs).get('items') or []
        return items[0] if items else None

    def create(self, data):
        return self.client.send('POST', self.path, json=data)

    def update(self, record_id, data):
        return self.client.send('PATCH', f'{self.path}/{quote(record_id, safe="")}', json=data)

    def delete(self, record_id):
        self.client.send('DELETE', f'{self.path}/{quote(record_id, safe="")}')
        return True


class StoreClient:
    def __init__(self, base_url=DEFAULT_URL, auth_store=None, timeout=DEFAULT_TIMEOUT,
                 session=None, auth_collection='users'):
        self.base_url = base_url.rstrip('/')
        self.auth_store = auth_store or AuthStore()
        self.timeout = timeout
        self.session = session or requests.Session()
        self.auth_collection = auth_collection

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def collection(self, name):
        return Collection(self, name)

    def auth_with_password(self, identity, password):
        path = f'/api/collections/{quote(self.auth_collection, safe="")}/auth-with-password'
        data = self.send('POST', path, json={'identity': identity, 'password': password})
        self.auth_store.save(data.get('token'), data.get('record'))
        return data

    def send(self, method, path, params=None, json=None):
        url = self.base_url + path
        headers = {'Accept': 'application/json'}
        if self.auth_store.token:
            headers['Authorization'] = self.auth_store.token
        logger.debug('%s %s %s', method, url, params or '')
        try:
            resp = self.session.request(method, url, params=params, json=json,
                                        headers=headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise StoreError(0, f'store unreachable: {e}', url=url) from e

        if resp.status_code == 204:
            return None
        try:
            data = resp.json()
        except ValueError:
            data = {}
        if resp.status_code >= 400:
            body = data if isinstance(data, dict) else {}
            raise StoreError(resp.status_code, body.get('message') or resp.reason or 'request failed',
                             body.get('data'), url=url)
        return data

    def close(self):
        self.session.close()
