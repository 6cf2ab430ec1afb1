import logging
import os

from dotenv import load_dotenv
from flask import Flask, jsonify, redirect, request, url_for

from auth import auth
from errors import NotAuthenticated
from extensions import close_store, csrf, get_store, login_manager
from models import User
from routes import api_bp, main_bp
from services.habit_service import fail
from services.view_cache import ViewCache
from store import DEFAULT_URL, StoreClient
from utils import format_count

load_dotenv()


def _env_flag(name, default='false'):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes')


def create_app(overrides=None):
    app = Flask(__name__)

    app.config['SECRET_KEY'] = os.environ.get('SECRET_KEY', 'dev_key_change_in_prod')
    app.config['STORE_URL'] = os.environ.get('STORE_URL', DEFAULT_URL)
    app.config['STORE_TIMEOUT'] = float(os.environ.get('STORE_TIMEOUT', '10'))
    app.config['STORE_AUTH_COLLECTION'] = os.environ.get('STORE_AUTH_COLLECTION', 'users')
    app.config['STORE_FACTORY'] = StoreClient
    app.config['AUTH_COOKIE_NAME'] = os.environ.get('AUTH_COOKIE_NAME', 'pb_auth')
    app.config['AUTH_COOKIE_SECURE'] = _env_flag('AUTH_COOKIE_SECURE')
    app.config['SUMMARY_CACHE_TTL'] = int(os.environ.get('SUMMARY_CACHE_TTL', '60'))
    app.config['LOG_LEVEL'] = os.environ.get('LOG_LEVEL', 'INFO').upper()
    app.config['WTF_CSRF_ENABLED'] = _env_flag('WTF_CSRF_ENABLED', 'true')
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(level=app.config['LOG_LEVEL'],
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    app.extensions['store_factory'] = app.config['STORE_FACTORY']
    app.extensions['view_cache'] = ViewCache(ttl=app.config['SUMMARY_CACHE_TTL'])

    csrf.init_app(app)
    login_manager.login_view = 'auth.login'
    login_manager.init_app(app)
    app.teardown_appcontext(close_store)

    app.register_blueprint(auth)
    app.register_blueprint(main_bp)
    app.register_blueprint(api_bp, url_prefix='/api')

    app.add_template_filter(format_count, 'format_count')
    return app


@login_manager.request_loader
def load_user_from_request(request):
    auth_store = get_store().auth_store
    if auth_store.is_valid and auth_store.user_id:
        return User(auth_store.model or {'id': auth_store.user_id})
    return None


@login_manager.unauthorized_handler
def unauthorized():
    if request.blueprint == 'api':
        return jsonify(fail(NotAuthenticated.kind, 'Not authenticated')), 401
    return redirect(url_for('auth.login', next=request.full_path.rstrip('?')))


app = create_app()

if __name__ == '__main__':
    app.run(debug=True)
