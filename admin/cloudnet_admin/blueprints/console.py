import concurrent.futures
import io
import uuid

from flask import (
    Blueprint, abort, current_app, jsonify, redirect, render_template, request, send_file, session, url_for,
)

from ..decorators import login_required
from ..errors import CommandFailure
from ..extensions import EXPORT_FILENAME, LEVEL_FILTERS
from ..services.log_buffer import parse_filter
from ..services.runtime import ConsoleNotOpen
from ..services.session import SessionCredentials

bp = Blueprint('console', __name__)

SCOPES = ('service', 'node')


def _sid():
    sid = session.get('console_sid')
    if not sid:
        sid = session['console_sid'] = uuid.uuid4().hex
    return sid


def _hub(scope):
    if scope not in SCOPES:
        abort(404)
    hub = current_app.console_hub
    if not hub.running:
        abort(503)
    return hub


@bp.errorhandler(ConsoleNotOpen)
def _not_open(e):
    return jsonify({'ok': False, 'error': str(e)}), 404


@bp.errorhandler(concurrent.futures.TimeoutError)
def _hub_timeout(e):
    return jsonify({'ok': False, 'error': 'Console did not respond in time'}), 504


@bp.route('/')
@login_required
def index():
    return redirect(url_for('console.console', scope='node', target='local'))


@bp.route('/console/<scope>/<target>')
@login_required
def console(scope, target):
    if scope not in SCOPES:
        abort(404)
    return render_template(
        'console.html',
        scope=scope,
        target=target,
        filters=LEVEL_FILTERS,
        commands_enabled=scope == 'service',
    )


@bp.route('/api/console/<scope>/<target>/open', methods=['POST'])
@login_required
def api_console_open(scope, target):
    hub = _hub(scope)
    credentials = SessionCredentials.from_session(session)
    return jsonify(hub.open(_sid(), scope, target, credentials, request.scheme))


@bp.route('/api/console/<scope>/<target>/lines')
@login_required
def api_console_lines(scope, target):
    hub = _hub(scope)
    since = request.args.get('since', type=int)
    predicate = parse_filter(request.args.get('filter', 'ALL'))
    return jsonify(hub.poll(_sid(), scope, target, since=since, predicate=predicate))


@bp.route('/api/console/<scope>/<target>/send', methods=['POST'])
@login_required
def api_console_send(scope, target):
    hub = _hub(scope)
    data = request.get_json(silent=True) or {}
    try:
        hub.send(_sid(), scope, target, data.get('cmd', ''))
    except CommandFailure as e:
        return jsonify({'ok': False, 'error': str(e)})
    return jsonify({'ok': True})


@bp.route('/api/console/<scope>/<target>/clear', methods=['POST'])
@login_required
def api_console_clear(scope, target):
    _hub(scope).clear(_sid(), scope, target)
    return jsonify({'ok': True})


@bp.route('/api/console/<scope>/<target>/export')
@login_required
def api_console_export(scope, target):
    data = _hub(scope).export(_sid(), scope, target)
    return send_file(
        io.BytesIO(data),
        mimetype='text/plain',
        as_attachment=True,
        download_name=EXPORT_FILENAME,
    )


@bp.route('/api/console/<scope>/<target>/reconnect', methods=['POST'])
@login_required
def api_console_reconnect(scope, target):
    hub = _hub(scope)
    credentials = SessionCredentials.from_session(session)
    state = hub.reconnect(_sid(), scope, target, credentials, request.scheme)
    return jsonify({'ok': True, 'state': state})


@bp.route('/api/console/<scope>/<target>/dispose', methods=['POST'])
@login_required
def api_console_dispose(scope, target):
    _hub(scope).dispose(_sid(), scope, target)
    return jsonify({'ok': True})
