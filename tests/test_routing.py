from types import MappingProxyType

import pytest

from signal_relay.connection import PeerConnection
from signal_relay.constants import PeerKind
from signal_relay.errors import RouteUnavailable
from signal_relay.registry import RegistrySnapshot
from signal_relay.routing import Endpoint, route
from signal_relay.schemas import Answer, IceCandidate, Offer, Ping


@pytest.fixture
def peers(make_ws):
    streamer = PeerConnection(make_ws(), PeerKind.STREAMER)
    players = {}
    for player_id in ("1", "2"):
        conn = PeerConnection(make_ws(), PeerKind.PLAYER)
        conn.player_id = player_id
        players[player_id] = conn
    return streamer, players


def snapshot_of(streamer, players):
    return RegistrySnapshot(streamer=streamer, players=MappingProxyType(dict(players)))


def test_player_signal_goes_to_streamer_stamped_with_sender_id(peers):
    streamer, players = peers

    deliveries = route(Endpoint.player("1"), Offer(sdp="X"), snapshot_of(streamer, players))

    assert len(deliveries) == 1
    assert deliveries[0].target == Endpoint.streamer()
    assert deliveries[0].connection is streamer
    assert deliveries[0].envelope == Offer(sdp="X", player_id="1")


def test_player_cannot_spoof_another_player_or_broadcast(peers):
    streamer, players = peers
    forged = Answer(sdp="X", player_id="2", broadcast=True)

    [delivery] = route(Endpoint.player("1"), forged, snapshot_of(streamer, players))

    assert delivery.envelope.player_id == "1"
    assert delivery.envelope.broadcast is None


def test_streamer_signal_goes_to_named_player_unchanged(peers):
    streamer, players = peers
    candidate = IceCandidate(candidate={"candidate": "c", "sdpMid": "0"}, player_id="2")

    [delivery] = route(Endpoint.streamer(), candidate, snapshot_of(streamer, players))

    assert delivery.target == Endpoint.player("2")
    assert delivery.connection is players["2"]
    assert delivery.envelope is candidate


def test_streamer_broadcast_reaches_every_player(peers):
    streamer, players = peers
    offer = Offer(sdp="X", broadcast=True)

    deliveries = route(Endpoint.streamer(), offer, snapshot_of(streamer, players))

    assert {d.target for d in deliveries} == {Endpoint.player("1"), Endpoint.player("2")}
    assert all(d.envelope is offer for d in deliveries)


def test_broadcast_without_players_routes_nowhere(peers):
    streamer, _ = peers
    assert route(Endpoint.streamer(), Offer(sdp="X", broadcast=True), snapshot_of(streamer, {})) == []


def test_missing_streamer_is_route_unavailable(peers):
    _, players = peers
    offer = Offer(sdp="X")

    with pytest.raises(RouteUnavailable) as info:
        route(Endpoint.player("1"), offer, snapshot_of(None, players))

    assert info.value.origin == Endpoint.player("1")
    assert info.value.envelope is offer


def test_missing_player_is_route_unavailable(peers):
    streamer, players = peers
    with pytest.raises(RouteUnavailable, match="player 9"):
        route(Endpoint.streamer(), Answer(sdp="X", player_id="9"), snapshot_of(streamer, players))


def test_control_messages_are_not_routable(peers):
    streamer, players = peers
    with pytest.raises(ValueError):
        route(Endpoint.player("1"), Ping(), snapshot_of(streamer, players))
