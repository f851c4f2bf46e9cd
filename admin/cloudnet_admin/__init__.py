import os

from flask import Flask, jsonify, redirect, render_template, request, session, url_for
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .services.runtime import ConsoleHub


def create_app(config_class=Config):
    app = Flask(
        __name__,
        template_folder='../templates',
    )
    cfg = config_class()
    app.secret_key = cfg.SECRET_KEY
    app.config['SESSION_COOKIE_HTTPONLY'] = cfg.SESSION_COOKIE_HTTPONLY
    app.config['SESSION_COOKIE_SAMESITE'] = getattr(cfg, 'SESSION_COOKIE_SAMESITE', 'Lax')
    app.config['SESSION_COOKIE_SECURE']   = getattr(cfg, 'SESSION_COOKIE_SECURE', False)
    app.config['PERMANENT_SESSION_LIFETIME'] = cfg.PERMANENT_SESSION_LIFETIME

    # The console's protocol guard compares against request.scheme, which must
    # reflect the browser-facing scheme when running behind a TLS proxy.
    if getattr(cfg, 'BEHIND_PROXY', False):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_proto=1, x_host=1)

    # Store config object on app for services that need it in threads
    app.cloudnet_config = cfg
    app.console_hub = ConsoleHub(cfg)

    # Register blueprints
    from .blueprints.auth    import bp as auth_bp
    from .blueprints.console import bp as console_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(console_bp)

    # Security headers on every response
    @app.after_request
    def _security_headers(response):
        response.headers.setdefault('X-Content-Type-Options', 'nosniff')
        response.headers.setdefault('X-Frame-Options', 'DENY')
        response.headers.setdefault('Referrer-Policy', 'same-origin')
        return response

    # Error handlers
    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Not found', 'status': 404}), 404
        if session.get('logged_in'):
            return render_template('error.html', code=404, message='Page not found'), 404
        return redirect(url_for('auth.login'))

    @app.errorhandler(500)
    def server_error(e):
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Internal server error', 'status': 500}), 500
        return render_template('error.html', code=500, message='Internal server error'), 500

    @app.errorhandler(503)
    def unavailable(e):
        if request.path.startswith('/api/'):
            return jsonify({'error': 'Console service unavailable', 'status': 503}), 503
        return render_template('error.html', code=503, message='Console service unavailable'), 503

    # Start the console hub only once.
    # Skip in TESTING mode (CI/pytest); tests start the hub explicitly.
    # Guard against werkzeug reloader double-start in dev.
    if not os.environ.get('TESTING') and (
        not app.debug or os.environ.get('WERKZEUG_RUN_MAIN') == 'true'
    ):
        from .services.schedulers import start_all
        start_all(app)

    return app
