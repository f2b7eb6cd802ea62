from decimal import Decimal

import pytest

from chain.client import GasPrice
from core.errors import ValidationError
from executor.failover import (
    RelayEndpoint,
    RelayPolicy,
    RelayStatus,
    fee_floors,
    gwei_to_wei,
    network_fees,
    rank_relays,
)


def _relay(relay_id, status=RelayStatus.UP, prio="0", max_fee="0"):
    return RelayEndpoint(
        id=relay_id,
        client=None,
        status=status,
        policy=RelayPolicy(Decimal(prio), Decimal(max_fee)),
    )


def test_gwei_conversion_is_exact():
    assert gwei_to_wei("1.5") == 1_500_000_000
    assert gwei_to_wei(Decimal("0.000000001")) == 1
    assert gwei_to_wei(2) == 2_000_000_000
    with pytest.raises(ValidationError):
        gwei_to_wei("-1")
    with pytest.raises(ValidationError):
        gwei_to_wei("fast")


def test_rank_preferred_then_up():
    relays = [
        _relay("a", RelayStatus.DOWN),
        _relay("b"),
        _relay("c", RelayStatus.STOPPED),
        _relay("d"),
    ]
    assert [r.id for r in rank_relays(relays)] == ["b", "d", "a", "c"]
    assert [r.id for r in rank_relays(relays, preferred_id="c")] == ["c", "b", "d", "a"]
    assert [r.id for r in rank_relays(relays, preferred_id="missing")] == ["b", "d", "a", "c"]


def test_name_defaults_to_id():
    assert _relay("primary").name == "primary"


def test_floors_only_from_up_relays():
    relays = [
        _relay("a", prio="1", max_fee="2"),
        _relay("b", RelayStatus.DOWN, prio="50", max_fee="90"),
        _relay("c", prio="1.5", max_fee="1"),
    ]
    assert fee_floors(relays) == (1_500_000_000, 2_000_000_000)


def test_floors_fall_back_to_all_when_none_up():
    relays = [
        _relay("a", RelayStatus.DOWN, prio="3"),
        _relay("b", RelayStatus.STOPPED, max_fee="4"),
    ]
    assert fee_floors(relays) == (3_000_000_000, 4_000_000_000)
    assert fee_floors([]) == (0, 0)


def test_network_fees_without_floors():
    gas_price = GasPrice(base_fee=100, priority_fee=7)
    assert network_fees(gas_price, [_relay("a")]) == (207, 7)


def test_network_fees_apply_floors():
    gas_price = GasPrice(base_fee=100, priority_fee=7)
    relays = [_relay("a", prio="0.000000050", max_fee="0.000001")]
    assert network_fees(gas_price, relays) == (1_000, 50)


def test_priority_floor_lifts_max_fee():
    gas_price = GasPrice(base_fee=1, priority_fee=1)
    relays = [_relay("a", prio="0.000000500")]
    max_fee, priority = network_fees(gas_price, relays)
    assert priority == 500
    assert max_fee == 500
