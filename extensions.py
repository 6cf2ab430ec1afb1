from flask import current_app, g, request
from flask_login import LoginManager
from flask_wtf.csrf import CSRFProtect

from store import AuthStore

csrf = CSRFProtect()
login_manager = LoginManager()


def request_auth_store():
    cookie = request.cookies.get(current_app.config['AUTH_COOKIE_NAME'])
    return AuthStore.from_cookie_value(cookie)


def get_store():
    """Store client for the current request, bound to the caller's auth cookie."""
    if 'store' not in g:
        factory = current_app.extensions['store_factory']
        g.store = factory(
            current_app.config['STORE_URL'],
            auth_store=request_auth_store(),
            timeout=current_app.config['STORE_TIMEOUT'],
            auth_collection=current_app.config['STORE_AUTH_COLLECTION'],
        )
    return g.store


def close_store(exc=None):
    store = g.pop('store', None)
    if store is not None:
        store.close()
