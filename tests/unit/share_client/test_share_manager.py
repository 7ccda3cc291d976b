"""Tests for ShareManager: creation, listing, parsing, request correlation.

Validates:
  - fetch_shares preserves count, order and type of server records.
  - An empty listing is a success, not an error.
  - The legacy "password required" 403 becomes its own event.
  - create_share limits permissions to what was shared with us.
  - Malformed records fail the whole operation with share.error.
  - Concurrent requests never see each other's call parameters.
"""

from __future__ import annotations

import asyncio
from datetime import date

import httpx
import pytest

from ocs_fakes import (
    SHARES_PATH,
    form_params,
    link_record,
    ocs_response,
    user_record,
)
from share_client import events
from share_client.account import Account
from share_client.dispatch import in_flight_count
from share_client.events import InMemoryShareEventSink
from share_client.manager import ShareManager, is_password_required_error
from share_client.model import LinkShare, Permission, Share, ShareType
from share_client.ocs.client import OcsClient
from share_client.ocs.errors import MalformedShareError, OcsError
from share_client.ocs.share_api import ShareApi
from share_client.sharee import Sharee


@pytest.fixture
def sink(manager) -> InMemoryShareEventSink:
    recorder = InMemoryShareEventSink()
    manager.events.subscribe(recorder)
    return recorder


# =====================================================================
# fetch_shares
# =====================================================================


class TestFetchShares:
    @pytest.mark.asyncio
    async def test_records_become_typed_entities_in_order(self, ocs_server, manager, sink):
        records = [
            user_record(id='1'),
            link_record(id='2'),
            user_record(id='3', share_type=1, share_with='admins'),
            user_record(id='4', share_type=6, share_with='carol@remote.example'),
            link_record(id='5'),
        ]
        ocs_server.on('GET', SHARES_PATH, ocs_response(records))

        event = await manager.fetch_shares('/Documents')

        assert event.event_type == events.SHARES_FETCHED
        shares = event.payload
        assert [s.id for s in shares] == ['1', '2', '3', '4', '5']
        assert [s.share_type for s in shares] == [
            ShareType.USER,
            ShareType.LINK,
            ShareType.GROUP,
            ShareType.REMOTE,
            ShareType.LINK,
        ]
        assert isinstance(shares[1], LinkShare)
        assert isinstance(shares[4], LinkShare)
        assert not isinstance(shares[0], LinkShare)
        assert sink.events == [event]

    @pytest.mark.asyncio
    async def test_empty_listing_is_success(self, ocs_server, manager, sink):
        ocs_server.on('GET', SHARES_PATH, ocs_response([]))

        event = await manager.fetch_shares('/Empty')

        assert event.event_type == events.SHARES_FETCHED
        assert event.payload == []
        assert sink.find(events.SERVER_ERROR) == []

    @pytest.mark.asyncio
    async def test_server_error(self, ocs_server, manager, sink):
        ocs_server.on(
            'GET',
            SHARES_PATH,
            ocs_response(statuscode=404, message='Wrong path, file/folder doesn\'t exist'),
        )

        event = await manager.fetch_shares('/missing')

        assert event.is_error
        assert event.code == 404
        assert sink.find(events.SHARES_FETCHED) == []

    @pytest.mark.asyncio
    async def test_record_without_id_fails_whole_listing(self, ocs_server, manager, sink):
        broken = user_record(id='2')
        del broken['id']
        ocs_server.on('GET', SHARES_PATH, ocs_response([user_record(id='1'), broken]))

        event = await manager.fetch_shares('/Documents')

        assert event.event_type == events.SERVER_ERROR
        assert event.code == 0
        assert "'id'" in event.message
        assert event.payload is None

    @pytest.mark.asyncio
    async def test_non_list_payload_is_malformed(self, ocs_server, manager):
        ocs_server.on('GET', SHARES_PATH, ocs_response('nope'))

        event = await manager.fetch_shares('/Documents')

        assert event.is_error

    @pytest.mark.asyncio
    async def test_returns_before_response(self, ocs_server, manager):
        release = asyncio.Event()

        async def slow(_request: httpx.Request) -> httpx.Response:
            await release.wait()
            return ocs_response([])

        ocs_server.on('GET', SHARES_PATH, slow)

        task = manager.fetch_shares('/Documents')
        await asyncio.sleep(0)
        assert not task.done()

        release.set()
        assert (await task).event_type == events.SHARES_FETCHED

    @pytest.mark.asyncio
    async def test_in_flight_tracking_drains(self, ocs_server, manager):
        release = asyncio.Event()

        async def slow(_request: httpx.Request) -> httpx.Response:
            await release.wait()
            return ocs_response([])

        ocs_server.on('GET', SHARES_PATH, slow)
        before = in_flight_count()

        task = manager.fetch_shares('/Documents')
        assert in_flight_count() == before + 1

        release.set()
        await task
        await asyncio.sleep(0)
        assert in_flight_count() == before

    @pytest.mark.asyncio
    async def test_undecodable_body_emits_error(self, ocs_server, manager, sink):
        def corrupt(_request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                headers={'Content-Encoding': 'gzip'},
                content=b'definitely not gzip',
            )

        ocs_server.on('GET', SHARES_PATH, corrupt)

        event = await manager.fetch_shares('/Documents')

        assert event.event_type == events.SERVER_ERROR
        assert event.code == 0
        assert sink.events == [event]

    @pytest.mark.asyncio
    async def test_empty_path_rejected(self, manager):
        with pytest.raises(ValueError):
            manager.fetch_shares('')


# =====================================================================
# create_link_share
# =====================================================================


class TestCreateLinkShare:
    @pytest.mark.asyncio
    async def test_success_with_password(self, ocs_server, manager, sink):
        ocs_server.on('POST', SHARES_PATH, ocs_response(link_record(share_with=None)))

        event = await manager.create_link_share('/Photos', 'secret')

        assert event.event_type == events.LINK_SHARE_CREATED
        share = event.payload
        assert isinstance(share, LinkShare)
        assert share.is_password_set() is True
        assert share.id == '7'
        assert form_params(ocs_server.requests[0]) == {
            'path': '/Photos',
            'shareType': '3',
            'password': 'secret',
        }

    @pytest.mark.asyncio
    async def test_success_without_password(self, ocs_server, manager):
        ocs_server.on('POST', SHARES_PATH, ocs_response(link_record()))

        event = await manager.create_link_share('/Photos')

        assert event.payload.is_password_set() is False

    @pytest.mark.asyncio
    async def test_legacy_password_required(self, ocs_server, manager, sink):
        ocs_server.on(
            'POST',
            SHARES_PATH,
            ocs_response(
                statuscode=403,
                message='You need to provide a password to create a public link, '
                'only protected links are allowed',
            ),
        )

        event = await manager.create_link_share('/Photos', '')

        assert event.event_type == events.LINK_SHARE_REQUIRES_PASSWORD
        assert event.payload == '/Photos'
        assert 'password' in event.message
        assert sink.find(events.SERVER_ERROR) == []

    @pytest.mark.asyncio
    async def test_unrelated_403_is_generic_error(self, ocs_server, manager, sink):
        ocs_server.on(
            'POST',
            SHARES_PATH,
            ocs_response(statuscode=403, message='Public link sharing is disabled by the administrator'),
        )

        event = await manager.create_link_share('/Photos')

        assert event.event_type == events.SERVER_ERROR
        assert event.code == 403
        assert sink.find(events.LINK_SHARE_REQUIRES_PASSWORD) == []

    @pytest.mark.asyncio
    async def test_password_403_with_password_is_generic_error(self, ocs_server, manager):
        ocs_server.on(
            'POST',
            SHARES_PATH,
            ocs_response(statuscode=403, message='Password does not meet the policy'),
        )

        event = await manager.create_link_share('/Photos', 'weak')

        assert event.event_type == events.SERVER_ERROR

    @pytest.mark.asyncio
    async def test_malformed_reply(self, ocs_server, manager):
        ocs_server.on('POST', SHARES_PATH, ocs_response({'url': 'https://x/s/abc'}))

        event = await manager.create_link_share('/Photos')

        assert event.event_type == events.SERVER_ERROR

    def test_password_signature(self):
        assert is_password_required_error(OcsError(403, 'Password required'), '')
        assert not is_password_required_error(OcsError(403, 'Password required'), 'pw')
        assert not is_password_required_error(OcsError(404, 'password'), '')
        assert not is_password_required_error(OcsError(403, 'Forbidden'), '')


# =====================================================================
# create_share
# =====================================================================


class TestCreateShare:
    @pytest.mark.asyncio
    async def test_creates_user_share(self, ocs_server, manager, sink):
        ocs_server.on('GET', SHARES_PATH, ocs_response([]))
        ocs_server.on('POST', SHARES_PATH, ocs_response(user_record(permissions=3)))

        event = await manager.create_share(
            '/Documents', ShareType.USER, 'bob', Permission.READ | Permission.UPDATE,
        )

        assert event.event_type == events.SHARE_CREATED
        share = event.payload
        assert isinstance(share, Share)
        assert share.permissions == Permission.READ | Permission.UPDATE
        assert share.share_with == Sharee('bob', 'Bob Builder', Sharee.Type.USER)
        assert ocs_server.requests[0].url.params['shared_with_me'] == 'true'
        assert form_params(ocs_server.requests[1]) == {
            'path': '/Documents',
            'shareType': '0',
            'shareWith': 'bob',
            'permissions': '3',
        }

    @pytest.mark.asyncio
    async def test_permissions_limited_to_incoming_grant(self, ocs_server, manager):
        ocs_server.on(
            'GET',
            SHARES_PATH,
            ocs_response([
                {'file_target': '/Other', 'permissions': 31},
                {'file_target': '/Documents', 'permissions': 17},
            ]),
        )
        ocs_server.on('POST', SHARES_PATH, ocs_response(user_record(permissions=17)))

        await manager.create_share('/Documents', ShareType.GROUP, 'admins', 31)

        assert form_params(ocs_server.requests[1])['permissions'] == '17'

    @pytest.mark.asyncio
    async def test_default_takes_incoming_grant(self, ocs_server, manager):
        ocs_server.on(
            'GET',
            SHARES_PATH,
            ocs_response([{'file_target': '/Documents', 'permissions': 1}]),
        )
        ocs_server.on('POST', SHARES_PATH, ocs_response(user_record(permissions=1)))

        await manager.create_share('/Documents', ShareType.USER, 'bob')

        assert form_params(ocs_server.requests[1])['permissions'] == '1'

    @pytest.mark.asyncio
    async def test_default_without_grant_omits_permissions(self, ocs_server, manager):
        ocs_server.on('GET', SHARES_PATH, ocs_response([]))
        ocs_server.on('POST', SHARES_PATH, ocs_response(user_record()))

        await manager.create_share('/Documents', ShareType.REMOTE, 'carol@remote.example')

        assert 'permissions' not in form_params(ocs_server.requests[1])

    @pytest.mark.asyncio
    async def test_first_step_failure_skips_creation(self, ocs_server, manager, sink):
        ocs_server.on('GET', SHARES_PATH, ocs_response(statuscode=997, message='Unauthorised'))

        event = await manager.create_share('/Documents', ShareType.USER, 'bob', 1)

        assert event.is_error
        assert event.code == 997
        assert ocs_server.find('POST') == []

    @pytest.mark.asyncio
    async def test_server_rejects_creation(self, ocs_server, manager):
        ocs_server.on('GET', SHARES_PATH, ocs_response([]))
        ocs_server.on(
            'POST',
            SHARES_PATH,
            ocs_response(statuscode=404, message='Please specify a valid user'),
        )

        event = await manager.create_share('/Documents', ShareType.USER, 'nobody', 1)

        assert event.code == 404
        assert event.message == 'Please specify a valid user'

    @pytest.mark.asyncio
    async def test_link_type_rejected(self, ocs_server, manager):
        with pytest.raises(ValueError):
            manager.create_share('/Documents', ShareType.LINK, '', 1)
        assert ocs_server.requests == []


# =====================================================================
# Parsing
# =====================================================================


class TestParsing:
    @pytest.mark.asyncio
    @pytest.mark.parametrize('missing', ['id', 'path', 'share_type', 'permissions'])
    async def test_mandatory_fields(self, manager, missing):
        record = user_record()
        del record[missing]
        with pytest.raises(MalformedShareError):
            manager.parse_share(record)

    @pytest.mark.asyncio
    async def test_string_encoded_numbers(self, manager):
        share = manager.parse_share(user_record(id=12, share_type='1', permissions='19'))
        assert share.id == '12'
        assert share.share_type is ShareType.GROUP
        assert share.permissions == 19

    @pytest.mark.asyncio
    async def test_unknown_share_type(self, manager):
        with pytest.raises(MalformedShareError):
            manager.parse_share(user_record(share_type=42))

    @pytest.mark.asyncio
    async def test_foreign_permission_bits(self, manager):
        with pytest.raises(MalformedShareError):
            manager.parse_share(user_record(permissions=64))

    @pytest.mark.asyncio
    async def test_link_defaults(self, manager):
        record = link_record()
        del record['share_with']
        del record['expiration']
        share = manager.parse_link_share(record)
        assert share.is_password_set() is False
        assert share.get_expire_date() is None

    @pytest.mark.asyncio
    async def test_link_expiration_formats(self, manager):
        assert manager.parse_link_share(
            link_record(expiration='2026-10-31 00:00:00'),
        ).expire_date == date(2026, 10, 31)
        assert manager.parse_link_share(
            link_record(expiration='2026-10-31'),
        ).expire_date == date(2026, 10, 31)

    @pytest.mark.asyncio
    async def test_link_url_from_token_on_modern_server(self, manager):
        share = manager.parse_link_share(link_record(url=None, token='tok123'))
        assert share.get_link() == 'https://cloud.example.com/index.php/s/tok123'

    @pytest.mark.asyncio
    async def test_link_url_from_token_on_old_server(self, http_client):
        old = Account(url='https://old.example.com/', user='alice', server_version='7.0.4')
        manager = ShareManager(ShareApi(OcsClient(old, http_client=http_client)))
        share = manager.parse_link_share(link_record(url=None, token='tok123'))
        assert share.get_link() == 'https://old.example.com/public.php?service=files&t=tok123'

    @pytest.mark.asyncio
    async def test_parse_link_share_rejects_user_record(self, manager):
        with pytest.raises(MalformedShareError):
            manager.parse_link_share(user_record())


# =====================================================================
# Request correlation
# =====================================================================


class TestCorrelation:
    @pytest.mark.asyncio
    async def test_out_of_order_responses_keep_their_own_context(self, ocs_server, manager, sink):
        second_delivered = asyncio.Event()
        manager.events.subscribe(
            lambda _event: second_delivered.set(),
            events.LINK_SHARE_CREATED,
        )

        async def respond(request: httpx.Request) -> httpx.Response:
            path = form_params(request)['path']
            if path == '/first':
                await second_delivered.wait()
                return ocs_response(
                    statuscode=403,
                    message='Password required for public links',
                )
            return ocs_response(link_record(id='99', path='/second'))

        ocs_server.on('POST', SHARES_PATH, respond)

        first = manager.create_link_share('/first')
        second = manager.create_link_share('/second', 'pw')
        first_event, second_event = await asyncio.gather(first, second)

        assert first_event.event_type == events.LINK_SHARE_REQUIRES_PASSWORD
        assert first_event.payload == '/first'
        assert second_event.event_type == events.LINK_SHARE_CREATED
        assert second_event.payload.path == '/second'
        assert second_event.payload.is_password_set() is True
        # Completion order follows the server, not the call order.
        assert [e.event_type for e in sink.events] == [
            events.LINK_SHARE_CREATED,
            events.LINK_SHARE_REQUIRES_PASSWORD,
        ]
