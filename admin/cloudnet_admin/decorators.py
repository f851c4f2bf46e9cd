import functools

from flask import jsonify, redirect, request, session, url_for


def login_required(f):
    """Require a dashboard login holding a REST token and address.

    Page requests are redirected to the login form, ``/api/`` requests get a
    JSON 401.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if not session.get('logged_in') or not session.get('at') or not session.get('add'):
            if request.path.startswith('/api/'):
                return jsonify({'error': 'Unauthorized', 'status': 401}), 401
            return redirect(url_for('auth.login'))
        return f(*args, **kwargs)
    return decorated
