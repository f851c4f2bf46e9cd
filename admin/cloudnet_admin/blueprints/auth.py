import logging
import urllib.parse
import uuid

from flask import (
    Blueprint, current_app, flash, jsonify, redirect, render_template, request, session, url_for,
)

from ..decorators import login_required
from ..errors import RestError
from ..services.rest import rest_login

log = logging.getLogger(__name__)

bp = Blueprint('auth', __name__)


@bp.route('/login', methods=['GET', 'POST'])
def login():
    cfg = current_app.cloudnet_config
    if request.method == 'POST':
        address = request.form.get('address', '').strip().rstrip('/')
        username = request.form.get('username', '').strip()
        password = request.form.get('password', '')
        if not address.startswith(('http://', 'https://')) or not username:
            flash('Invalid credentials', 'error')
            return render_template('login.html', address=address or cfg.REST_ADDRESS)
        try:
            token = rest_login(address, username, password, cfg)
        except RestError as e:
            log.info('Login for %s at %s failed: %s', username, address, e)
            flash('Invalid credentials', 'error')
            return render_template('login.html', address=address)
        session.clear()
        session['logged_in'] = True
        session['username'] = username
        session['at'] = token
        session['add'] = urllib.parse.quote(address, safe='')
        session['console_sid'] = uuid.uuid4().hex
        return redirect(url_for('console.index'))
    return render_template('login.html', address=cfg.REST_ADDRESS)


@bp.route('/logout')
def logout():
    sid = session.get('console_sid')
    hub = current_app.console_hub
    if sid and hub.running:
        hub.dispose_session(sid)
    session.clear()
    return redirect(url_for('auth.login'))


@bp.route('/api/auth/getCookies')
@login_required
def get_cookies():
    return jsonify({'add': session['add']})
