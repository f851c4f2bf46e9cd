import os

from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', '0') == '1'
    PERMANENT_SESSION_LIFETIME = 3600
    BEHIND_PROXY = os.environ.get('BEHIND_PROXY', '0') == '1'
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Default REST address offered on the login form, e.g. http://127.0.0.1:2812/api/v3
    REST_ADDRESS = os.environ.get('REST_ADDRESS', '')
    REST_TIMEOUT = float(os.environ.get('REST_TIMEOUT', '10'))

    AUTH_PATH      = os.environ.get('AUTH_PATH', '/auth')
    TICKET_PATH    = os.environ.get('TICKET_PATH', '/api/auth/ticket')
    LOG_LINES_PATH = os.environ.get('LOG_LINES_PATH', '/service/{id}/logLines')
    EXECUTE_PATH   = os.environ.get('EXECUTE_PATH', '/service/{id}/execute')

    SERVICE_CONSOLE_PATH = os.environ.get('SERVICE_CONSOLE_PATH', '/service/{id}/liveLog')
    NODE_CONSOLE_PATH    = os.environ.get('NODE_CONSOLE_PATH', '/node/liveConsole')

    # 0 disables the bound (and the timeouts below).
    CONSOLE_MAX_LINES    = int(os.environ.get('CONSOLE_MAX_LINES', '5000'))
    TICKET_TIMEOUT       = float(os.environ.get('TICKET_TIMEOUT', '10'))
    SOCKET_OPEN_TIMEOUT  = float(os.environ.get('SOCKET_OPEN_TIMEOUT', '10'))
    CONSOLE_IDLE_SECONDS = int(os.environ.get('CONSOLE_IDLE_SECONDS', '300'))
    # Longer than the slowest console open the request thread waits on.
    HUB_CALL_TIMEOUT     = float(os.environ.get(
        'HUB_CALL_TIMEOUT', 2 * REST_TIMEOUT + TICKET_TIMEOUT + SOCKET_OPEN_TIMEOUT + 5
    ))

    def console_path(self, scope, target):
        template = self.SERVICE_CONSOLE_PATH if scope == 'service' else self.NODE_CONSOLE_PATH
        return template.format(id=target)
