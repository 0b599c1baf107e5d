import json

import pytest

from vrf_vrrp.config import (
    UnicastPeer,
    VirtualRouterDefinition,
    decode_definitions,
    encode_definitions,
    vrf_name,
)
from vrf_vrrp.exceptions import DecodeError


def test_decode_full_definition():
    text = json.dumps(
        [
            {
                "vrid": 7,
                "interface": "eth1",
                "priority": 120,
                "advertisement-interval": 3,
                "preempt": True,
                "state": "master",
                "virtual-address": "10.0.0.254",
                "unicast-peer": [{"address": "10.0.0.2"}, "10.0.0.3"],
            }
        ]
    )

    [vrrp] = decode_definitions(text)

    assert vrrp.vrid == 7
    assert vrrp.interface == "eth1"
    assert vrrp.priority == 120
    assert vrrp.advertisement_interval == 3
    assert vrrp.preempt is True
    assert vrrp.is_master
    assert vrrp.virtual_address == "10.0.0.254"
    assert vrrp.unicast_peers == (UnicastPeer("10.0.0.2"), UnicastPeer("10.0.0.3"))


def test_decode_accepts_struct_style_keys():
    text = json.dumps(
        [{"Vrid": 1, "Interface": "eth0", "AdvertisementInterval": 5, "UnicastPeerList": [{"Address": "192.0.2.1"}]}]
    )

    [vrrp] = decode_definitions(text)

    assert vrrp.advertisement_interval == 5
    assert vrrp.unicast_peers == (UnicastPeer("192.0.2.1"),)
    assert vrrp.state == "backup"
    assert vrrp.effective_interval == 5


def test_decode_null_is_empty():
    assert decode_definitions("null") == []
    assert decode_definitions("[]") == []


@pytest.mark.parametrize(
    "text",
    [
        "not json",
        '{"vrid": 1}',
        '[{"interface": "eth0"}]',
        '[{"vrid": 300}]',
        '[{"vrid": "x"}]',
        '[{"vrid": 1, "preempt": "maybe"}]',
        '[{"vrid": 1, "unicast-peer": [{"port": 1}]}]',
    ],
)
def test_decode_rejects_malformed_documents(text):
    with pytest.raises(DecodeError):
        decode_definitions(text)


def test_encode_round_trips_through_decoder():
    definitions = [
        VirtualRouterDefinition(vrid=2, interface="eth2", priority=90, unicast_peers=(UnicastPeer("1.1.1.1"),))
    ]

    assert decode_definitions(encode_definitions(definitions)) == definitions


def test_vrf_name():
    assert vrf_name(3) == "vrf3"
