from flask import flash, redirect, render_template, request, url_for
from flask_login import current_user, login_required

from heatmap import build_heatmap
from models import DEFAULT_COLOR
from . import main_bp, habit_service


def _data_or(result, default):
    if result['success']:
        return result['data']
    flash(result['error'], 'error')
    return default


def _habit_heatmap(service, habits, habit_id):
    habit = next((h for h in habits if h['id'] == habit_id), None)
    if habit is None:
        return build_heatmap(_data_or(service.get_year_summary(), {}))
    counts = _data_or(service.get_habit_summary(habit['id']), {})
    return build_heatmap(counts, habit=habit, toggle_url=url_for('main.toggle_entry', habit_id=habit['id']))


@main_bp.route('/')
@login_required
def index():
    service = habit_service()
    habits = _data_or(service.get_habits(), [])
    heatmap = _habit_heatmap(service, habits, request.args.get('habit'))

    if request.headers.get('HX-Request') and request.headers.get('HX-Target') == 'heatmap':
        return render_template('partials/heatmap.html', heatmap=heatmap)

    return render_template('index.html', user=current_user, habits=habits, selected=heatmap.habit,
                           heatmap=heatmap, default_color=DEFAULT_COLOR)


@main_bp.route('/habits', methods=['POST'])
@login_required
def create_habit():
    result = habit_service().create_habit(request.form.get('name'), request.form.get('color') or DEFAULT_COLOR)
    if not result['success']:
        flash(result['error'], 'error')
        return redirect(url_for('main.index'))
    return redirect(url_for('main.index', habit=result['data']['id']))


@main_bp.route('/habits/<habit_id>/edit', methods=['POST'])
@login_required
def update_habit(habit_id):
    fields = {k: request.form[k] for k in ('name', 'color') if request.form.get(k)}
    result = habit_service().update_habit(habit_id, fields)
    if not result['success']:
        flash(result['error'], 'error')
    return redirect(url_for('main.index', habit=habit_id))


@main_bp.route('/habits/<habit_id>/delete', methods=['POST'])
@login_required
def delete_habit(habit_id):
    result = habit_service().delete_habit(habit_id)
    if not result['success']:
        flash(result['error'], 'error')
        return redirect(url_for('main.index', habit=habit_id))
    return redirect(url_for('main.index'))


@main_bp.route('/habits/<habit_id>/toggle', methods=['POST'])
@login_required
def toggle_entry(habit_id):
    service = habit_service()
    result = service.toggle_entry(habit_id, request.form.get('date'))

    if request.headers.get('HX-Request'):
        # swap the grid in place, errors are shown inside the partial
        habits = service.get_habits()
        heatmap = _habit_heatmap(service, habits['data'] if habits['success'] else [], habit_id)
        error = None if result['success'] else result['error']
        return render_template('partials/heatmap.html', heatmap=heatmap, error=error)

    if not result['success']:
        flash(result['error'], 'error')
    return redirect(url_for('main.index', habit=habit_id))
