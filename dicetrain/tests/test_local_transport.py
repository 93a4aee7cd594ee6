"""Tests for the peer transport contract, run over the in-process transport."""

import logging
import re

import pytest

from dicetrain.errors import AddressUnavailable, ConnectRefused
from dicetrain.messages.protocol import (
    JoinRejection,
    LobbyClosedNotice,
    MessageType,
    Pong,
    RerollAction,
)
from dicetrain.network import transport as transport_module
from dicetrain.network.local_transport import LocalNetwork, LocalTransport
from dicetrain.network.transport import TransportEvent


async def host_and_client(network: LocalNetwork) -> tuple[LocalTransport, LocalTransport, str]:
    host = LocalTransport(network)
    client = LocalTransport(network)
    await host.become_host()
    client_id = await client.become_client(host.session_id)
    await network.settle()
    return host, client, client_id


def record(transport: LocalTransport, event: TransportEvent) -> list:
    seen = []
    transport.events.subscribe(event, lambda *args: seen.append(args[0] if args else None))
    return seen


class TestOpening:
    @pytest.mark.asyncio
    async def test_host_gets_lobby_code(self):
        network = LocalNetwork()
        host = LocalTransport(network)
        opened = record(host, TransportEvent.OPEN)
        code = await host.become_host()

        assert re.fullmatch(r"DT-[ABCDEFGHJKLMNPQRSTUVWXYZ23456789]{6}", code)
        assert opened == [code]
        assert host.is_host
        assert host.local_id == code

    @pytest.mark.asyncio
    async def test_collision_retries_with_fresh_code(self, monkeypatch):
        codes = iter(["DT-AAAAAA", "DT-AAAAAA", "DT-BBBBBB"])
        monkeypatch.setattr(transport_module, "generate_lobby_code", lambda: next(codes))
        network = LocalNetwork()

        assert await LocalTransport(network).become_host() == "DT-AAAAAA"
        assert await LocalTransport(network).become_host() == "DT-BBBBBB"

    @pytest.mark.asyncio
    async def test_collision_gives_up(self, monkeypatch):
        monkeypatch.setattr(transport_module, "generate_lobby_code", lambda: "DT-AAAAAA")
        network = LocalNetwork()
        await LocalTransport(network).become_host()

        second = LocalTransport(network)
        with pytest.raises(AddressUnavailable):
            await second.become_host(max_attempts=3)
        assert not second.is_open

    @pytest.mark.asyncio
    async def test_unknown_session_refused(self):
        with pytest.raises(ConnectRefused):
            await LocalTransport(LocalNetwork()).become_client("DT-NOSUCH")

    @pytest.mark.asyncio
    async def test_peer_connected_on_host(self):
        network = LocalNetwork()
        host = LocalTransport(network)
        await host.become_host()
        connected = record(host, TransportEvent.PEER_CONNECTED)

        client = LocalTransport(network)
        client_id = await client.become_client(host.session_id)
        await network.settle()

        assert client_id.startswith("peer-")
        assert connected == [client_id]
        assert host.connected_peers() == [client_id]
        assert client.connected_peers() == [host.session_id]


class TestMessaging:
    @pytest.mark.asyncio
    async def test_per_sender_order(self):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        received = []
        host.on_message(MessageType.ACTION_REROLL, lambda p, f: received.append((p.die_index, f)))

        for i in range(10):
            assert client.send_to_host(MessageType.ACTION_REROLL, RerollAction(i))
        await network.settle()

        assert received == [(i, client_id) for i in range(10)]

    @pytest.mark.asyncio
    async def test_last_handler_wins(self):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        first, second = [], []
        host.on_message(MessageType.ACTION_ROLL, lambda p, f: first.append(p))
        host.on_message(MessageType.ACTION_ROLL, lambda p, f: second.append(p))

        client.send_to_host(MessageType.ACTION_ROLL)
        await network.settle()
        assert first == []
        assert len(second) == 1

        assert host.off_message(MessageType.ACTION_ROLL)
        client.send_to_host(MessageType.ACTION_ROLL)
        await network.settle()
        assert len(second) == 1

    @pytest.mark.asyncio
    async def test_ping_answered_by_transport(self):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        pongs = []
        client.on_message(MessageType.PONG, lambda p, f: pongs.append((p, f)))

        client.send_to_host(MessageType.PING)
        await network.settle()
        assert pongs == [(Pong(), host.session_id)]

    @pytest.mark.asyncio
    async def test_malformed_messages_dropped(self):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        received = []
        host.on_message(MessageType.ACTION_REROLL, lambda p, f: received.append(p))

        host._receive(client_id, "not json")
        host._receive(client_id, '{"type": "teleport", "payload": {}}')
        host._receive(client_id, '{"type": "action_reroll", "payload": {"die_index": "x"}}')
        client.send_to_host(MessageType.ACTION_REROLL, RerollAction(0))
        await network.settle()

        assert received == [RerollAction(0)]

    @pytest.mark.asyncio
    async def test_handler_error_reported_not_fatal(self, caplog):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        errors = record(host, TransportEvent.ERROR)
        calls = []

        def flaky(payload, from_id):
            calls.append(payload)
            if len(calls) == 1:
                raise RuntimeError("boom")

        host.on_message(MessageType.ACTION_ROLL, flaky)
        with caplog.at_level(logging.ERROR):
            client.send_to_host(MessageType.ACTION_ROLL)
            client.send_to_host(MessageType.ACTION_ROLL)
            await network.settle()

        assert len(calls) == 2
        assert isinstance(errors[0], RuntimeError)
        assert host.is_peer_connected(client_id)

    @pytest.mark.asyncio
    async def test_send_to_unknown_peer(self):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        assert not host.send("peer-missing", MessageType.PING)
        assert not host.send_to_host(MessageType.PING)

    @pytest.mark.asyncio
    async def test_broadcast_reaches_every_client(self):
        network = LocalNetwork()
        host = LocalTransport(network)
        await host.become_host()
        clients = [LocalTransport(network) for _ in range(3)]
        for client in clients:
            await client.become_client(host.session_id)
        await network.settle()

        got = {i: [] for i in range(3)}
        for i, client in enumerate(clients):
            client.on_message(MessageType.JOIN_REJECTED, lambda p, f, i=i: got[i].append(p.reason))

        host.broadcast_except(clients[0].local_id, MessageType.JOIN_REJECTED, JoinRejection("x"))
        await network.settle()
        assert got == {0: [], 1: ["x"], 2: ["x"]}

    @pytest.mark.asyncio
    async def test_client_cannot_broadcast(self, caplog):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        received = []
        host.on_message(MessageType.ACTION_ROLL, lambda p, f: received.append(p))

        with caplog.at_level(logging.WARNING):
            client.broadcast(MessageType.ACTION_ROLL)
            await network.settle()
        assert received == []
        assert "only the host can broadcast" in caplog.text


class TestClosing:
    @pytest.mark.asyncio
    async def test_disconnect_flushes_first(self):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        order = []
        client.on_message(MessageType.LOBBY_CLOSED, lambda p, f: order.append(p.reason))
        client.events.subscribe(TransportEvent.DISCONNECTED, lambda s: order.append("disconnected"))
        left = record(host, TransportEvent.PEER_DISCONNECTED)

        host.send(client_id, MessageType.LOBBY_CLOSED, LobbyClosedNotice("You have been kicked"))
        assert host.disconnect(client_id)
        await network.settle()

        assert order == ["You have been kicked", "disconnected"]
        assert left == [client_id]
        assert host.connected_peers() == []

    @pytest.mark.asyncio
    async def test_silent_drop_seen_by_both_sides(self):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        left = record(host, TransportEvent.PEER_DISCONNECTED)
        lost = record(client, TransportEvent.DISCONNECTED)

        assert network.drop(client_id)
        await network.settle()

        assert left == [client_id]
        assert lost == [host.session_id]
        assert not client.send_to_host(MessageType.PING)

    @pytest.mark.asyncio
    async def test_host_teardown_disconnects_clients(self):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        lost = record(client, TransportEvent.DISCONNECTED)

        await host.teardown()
        await network.settle()

        assert lost == [host.session_id]
        assert network.lookup(host.session_id) is None

    @pytest.mark.asyncio
    async def test_client_teardown_seen_by_host(self):
        network = LocalNetwork()
        host, client, client_id = await host_and_client(network)
        left = record(host, TransportEvent.PEER_DISCONNECTED)
        lost = record(client, TransportEvent.DISCONNECTED)

        await client.teardown()
        await network.settle()

        assert left == [client_id]
        assert lost == []

    @pytest.mark.asyncio
    async def test_only_host_disconnects(self):
        network = LocalNetwork()
        host, client, _ = await host_and_client(network)
        assert not client.disconnect(host.session_id)
        assert not host.disconnect("peer-missing")
