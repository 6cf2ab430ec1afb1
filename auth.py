import logging

from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from extensions import get_store
from store import StoreError

logger = logging.getLogger(__name__)

auth = Blueprint('auth', __name__)


def _safe_next(target):
    # only local paths, never "//host" or absolute urls
    if target and target.startswith('/') and not target.startswith('//'):
        return target
    return None


def set_auth_cookie(response, auth_store):
    config = current_app.config
    response.set_cookie(
        config['AUTH_COOKIE_NAME'],
        auth_store.export_cookie_value(),
        expires=auth_store.expires_at,
        httponly=True,
        secure=config['AUTH_COOKIE_SECURE'],
        samesite='Lax',
    )
    return response


@auth.route('/login', methods=['GET', 'POST'])
def login():
    if current_user.is_authenticated:
        return redirect(url_for('main.index'))
    if request.method == 'POST':
        identity = (request.form.get('identity') or '').strip()
        password = request.form.get('password') or ''
        if not identity or not password:
            flash('Invalid username or password', 'error')
            return render_template('login.html'), 400

        store = get_store()
        try:
            store.auth_with_password(identity, password)
        except StoreError as e:
            logger.info('login for %s rejected by store (%s)', identity, e.status)
            if e.status == 0 or e.status >= 500:
                flash('Login is unavailable right now, try again later', 'error')
            else:
                flash('Invalid username or password', 'error')
            return render_template('login.html'), 401

        response = redirect(_safe_next(request.args.get('next')) or url_for('main.index'))
        return set_auth_cookie(response, store.auth_store)
    return render_template('login.html')


@auth.route('/logout')
@login_required
def logout():
    current_app.extensions['view_cache'].invalidate(current_user.id)
    get_store().auth_store.clear()
    response = redirect(url_for('auth.login'))
    response.delete_cookie(current_app.config['AUTH_COOKIE_NAME'])
    return response
