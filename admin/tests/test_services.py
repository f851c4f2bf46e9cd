"""Unit tests for the REST-backed services: rest helper, tickets, commands."""
import asyncio
from unittest.mock import patch

import pytest
import requests

from conftest import ACCESS_TOKEN, REST_ADDRESS, make_response


# ── rest.py ───────────────────────────────────────────────────────────────────

class TestRestCall:
    def test_get_sends_bearer_token(self, credentials, cfg):
        from cloudnet_admin.services.rest import rest_call
        with patch('requests.get', return_value=make_response(body={'ok': 1})) as mock_get:
            result = rest_call('/service', credentials, cfg)
        assert result == {'ok': 1}
        assert mock_get.call_args[0][0] == f'{REST_ADDRESS}/service'
        headers = mock_get.call_args[1]['headers']
        assert headers['Authorization'] == f'Bearer {ACCESS_TOKEN}'

    def test_non_success_raises(self, credentials, cfg):
        from cloudnet_admin.errors import RestError
        from cloudnet_admin.services.rest import rest_call
        with patch('requests.get', return_value=make_response(status=403, body={})):
            with pytest.raises(RestError) as exc:
                rest_call('/service', credentials, cfg)
        assert exc.value.status == 403

    def test_empty_body_raises(self, credentials, cfg):
        from cloudnet_admin.errors import RestError
        from cloudnet_admin.services.rest import rest_call
        with patch('requests.get', return_value=make_response(text='')):
            with pytest.raises(RestError):
                rest_call('/service', credentials, cfg)

    def test_empty_body_allowed_when_not_expected(self, credentials, cfg):
        from cloudnet_admin.services.rest import rest_call
        with patch('requests.post', return_value=make_response(status=204, text='')):
            assert rest_call('/x', credentials, cfg, method='POST', expect_body=False) == {}

    def test_connection_error_wrapped(self, credentials, cfg):
        from cloudnet_admin.errors import RestError
        from cloudnet_admin.services.rest import rest_call
        with patch('requests.get', side_effect=requests.exceptions.ConnectionError('down')):
            with pytest.raises(RestError):
                rest_call('/service', credentials, cfg)

    def test_login_returns_access_token(self, cfg):
        from cloudnet_admin.services.rest import rest_login
        body = {'accessToken': {'token': 'abc', 'expiresIn': 3600}}
        with patch('requests.post', return_value=make_response(body=body)) as mock_post:
            assert rest_login(REST_ADDRESS + '/', 'admin', 'pw', cfg) == 'abc'
        assert mock_post.call_args[0][0] == f'{REST_ADDRESS}/auth'
        assert mock_post.call_args[1]['auth'] == ('admin', 'pw')

    def test_login_without_token_fails(self, cfg):
        from cloudnet_admin.errors import RestError
        from cloudnet_admin.services.rest import rest_login
        with patch('requests.post', return_value=make_response(body={'nope': True})):
            with pytest.raises(RestError):
                rest_login(REST_ADDRESS, 'admin', 'pw', cfg)


# ── tickets.py ────────────────────────────────────────────────────────────────

class TestTicketAuthClient:
    def test_request_ticket(self, credentials, cfg):
        from cloudnet_admin.services.tickets import TicketAuthClient, TicketScope
        client = TicketAuthClient(credentials, cfg)
        with patch('requests.post', return_value=make_response(body={'value': 'tkt'})) as mock_post:
            ticket = asyncio.run(client.request_ticket('node'))
        assert ticket.value == 'tkt'
        assert ticket.scope is TicketScope.NODE
        assert ticket.single_use is True
        assert mock_post.call_args[0][0] == f'{REST_ADDRESS}/api/auth/ticket'
        assert mock_post.call_args[1]['json'] == {'type': 'node'}

    @pytest.mark.parametrize('creds', [('', 'http%3A%2F%2Fh'), ('tok', '')])
    def test_unauthorized_without_network_call(self, cfg, creds):
        from cloudnet_admin.errors import Unauthorized
        from cloudnet_admin.services.session import SessionCredentials
        from cloudnet_admin.services.tickets import TicketAuthClient
        client = TicketAuthClient(SessionCredentials(*creds), cfg)
        with patch('requests.post') as mock_post:
            with pytest.raises(Unauthorized):
                asyncio.run(client.request_ticket('service'))
        mock_post.assert_not_called()

    def test_rejected_status_is_auth_failure(self, credentials, cfg):
        from cloudnet_admin.errors import AuthFailure, RestError
        from cloudnet_admin.services.tickets import TicketAuthClient
        client = TicketAuthClient(credentials, cfg)
        with patch('requests.post', return_value=make_response(status=401, body={})):
            with pytest.raises(AuthFailure) as exc:
                asyncio.run(client.request_ticket('service'))
        assert isinstance(exc.value.__cause__, RestError)

    @pytest.mark.parametrize('resp', [
        make_response(text='not json'),
        make_response(body={'ticket': 'x'}),
        make_response(body={'value': 42}),
        make_response(body=['value']),
    ])
    def test_malformed_body_is_auth_failure(self, credentials, cfg, resp):
        from cloudnet_admin.errors import AuthFailure
        from cloudnet_admin.services.tickets import TicketAuthClient
        client = TicketAuthClient(credentials, cfg)
        with patch('requests.post', return_value=resp):
            with pytest.raises(AuthFailure):
                asyncio.run(client.request_ticket('service'))

    def test_no_retry(self, credentials, cfg):
        from cloudnet_admin.errors import AuthFailure
        from cloudnet_admin.services.tickets import TicketAuthClient
        client = TicketAuthClient(credentials, cfg)
        with patch('requests.post', side_effect=requests.exceptions.Timeout('slow')) as mock_post:
            with pytest.raises(AuthFailure):
                asyncio.run(client.request_ticket('service'))
        assert mock_post.call_count == 1

    def test_invalid_scope(self, credentials, cfg):
        from cloudnet_admin.services.tickets import TicketAuthClient
        with pytest.raises(ValueError):
            asyncio.run(TicketAuthClient(credentials, cfg).request_ticket('group'))


# ── commands.py ───────────────────────────────────────────────────────────────

class TestCommandChannel:
    def test_send_posts_command(self, credentials, cfg):
        from cloudnet_admin.services.commands import CommandChannel
        channel = CommandChannel(credentials, cfg)
        with patch('requests.post', return_value=make_response(text='')) as mock_post:
            asyncio.run(channel.send('Lobby-1', 'say hi'))
        assert mock_post.call_args[0][0] == f'{REST_ADDRESS}/service/Lobby-1/execute'
        assert mock_post.call_args[1]['json'] == {'command': 'say hi'}

    @pytest.mark.parametrize('text', ['', '   ', '\t\n', None])
    def test_blank_rejected_locally(self, credentials, cfg, text):
        from cloudnet_admin.errors import CommandFailure
        from cloudnet_admin.services.commands import CommandChannel
        channel = CommandChannel(credentials, cfg)
        with patch('requests.post') as mock_post:
            with pytest.raises(CommandFailure):
                asyncio.run(channel.send('Lobby-1', text))
        mock_post.assert_not_called()

    def test_rejection_is_command_failure(self, credentials, cfg):
        from cloudnet_admin.errors import CommandFailure
        from cloudnet_admin.services.commands import CommandChannel
        channel = CommandChannel(credentials, cfg)
        with patch('requests.post', return_value=make_response(status=500, body={})):
            with pytest.raises(CommandFailure):
                asyncio.run(channel.send('Lobby-1', 'stop'))
