import logging

import requests

from ..errors import RestError

log = logging.getLogger(__name__)


def _handle_response(resp, expect_body=True):
    if not resp.ok:
        raise RestError(f'HTTP error! status: {resp.status_code}', status=resp.status_code)
    if not resp.text:
        if not expect_body:
            return {}
        raise RestError('Empty response received', status=resp.status_code)
    try:
        return resp.json()
    except ValueError:
        raise RestError(f'Failed to parse JSON response: {resp.text[:200]}', status=resp.status_code)


def rest_call(path, credentials, cfg, method='GET', data=None, params=None, expect_body=True):
    """Call the platform REST API with the session's bearer token.

    Raises Unauthorized (no network call) when the session lacks a token or
    address, RestError for transport failures and unusable responses.
    """
    token, address = credentials.require()
    url = f'{address}{path}'
    headers = {
        'Content-Type': 'application/json',
        'Authorization': f'Bearer {token}',
    }
    try:
        if method == 'GET':
            resp = requests.get(url, params=params, headers=headers, timeout=cfg.REST_TIMEOUT)
        else:
            resp = requests.post(url, json=data or {}, headers=headers, timeout=cfg.REST_TIMEOUT)
    except requests.exceptions.RequestException as e:
        log.debug('REST %s %s failed: %s', method, path, e)
        raise RestError(str(e)) from e
    return _handle_response(resp, expect_body=expect_body)


def rest_login(address, username, password, cfg):
    """Exchange basic credentials for an access token."""
    try:
        resp = requests.post(
            f'{address.rstrip("/")}{cfg.AUTH_PATH}',
            auth=(username, password),
            timeout=cfg.REST_TIMEOUT,
        )
    except requests.exceptions.RequestException as e:
        raise RestError(str(e)) from e
    body = _handle_response(resp)
    access = body.get('accessToken') if isinstance(body, dict) else None
    token = access.get('token') if isinstance(access, dict) else None
    if not isinstance(token, str) or not token:
        raise RestError('No access token in response', status=resp.status_code)
    return token
