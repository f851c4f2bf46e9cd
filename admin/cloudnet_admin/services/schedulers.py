import atexit


def start_all(app):
    """Start the background console hub and stop it on interpreter exit."""
    hub = app.console_hub
    hub.start()
    atexit.register(hub.stop)
