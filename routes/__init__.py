from flask import Blueprint, current_app

from extensions import get_store
from services.habit_service import HabitService

main_bp = Blueprint('main', __name__)
api_bp = Blueprint('api', __name__)


def habit_service():
    return HabitService(get_store(), current_app.extensions['view_cache'])


from . import main, api
