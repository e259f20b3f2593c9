"""Tests for pairing code allocation and redemption."""
import random

import pytest

from signaling.relay.exceptions import PairingCodesExhausted
from signaling.relay.pairing import PairingTable


class TestIssue:

    def test_code_in_range(self):
        table = PairingTable(rng=random.Random(1))
        for i in range(100):
            code = table.issue(f"peer-{i}")
            assert 0 <= code < 9999

    def test_codes_are_distinct(self):
        table = PairingTable(rng=random.Random(7))
        codes = [table.issue(f"peer-{i}") for i in range(500)]
        assert len(set(codes)) == 500
        assert len(table) == 500

    def test_small_space_filled_completely(self):
        table = PairingTable(code_space=5, max_attempts=10_000, rng=random.Random(3))
        codes = {table.issue(f"peer-{i}") for i in range(5)}
        assert codes == {0, 1, 2, 3, 4}

    def test_exhausted_space_fails(self):
        table = PairingTable(code_space=1, max_attempts=8)
        assert table.issue("A") == 0
        with pytest.raises(PairingCodesExhausted) as exc_info:
            table.issue("B")
        assert exc_info.value.attempts == 8
        assert exc_info.value.close_code == 1013
        assert table.owner(0) == "A"
        assert len(table) == 1


class TestRedeem:

    def test_redeem_is_one_shot(self):
        table = PairingTable()
        code = table.issue("A")
        assert table.redeem(code) == "A"
        assert code not in table
        assert table.redeem(code) is None

    def test_redeem_unknown(self):
        assert PairingTable().redeem(1234) is None


class TestRevoke:

    def test_revoke_own_code(self):
        table = PairingTable()
        code = table.issue("A")
        assert table.revoke(code, "A") is True
        assert code not in table

    def test_revoke_ignores_other_owner(self):
        table = PairingTable(code_space=1)
        table.issue("B")
        assert table.revoke(0, "A") is False
        assert table.owner(0) == "B"

    def test_revoke_absent(self):
        assert PairingTable().revoke(5, "A") is False
