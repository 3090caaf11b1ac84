import random
import pytest
from pydantic import ValidationError

from config import TestingSettings
from exceptions import RosterError
from models import Account, TransferRequest, USER_TRANSFER_SIGNATURE
from repositories import build_account_roster
from services import WorkloadGenerator


def make_accounts(count, balance=100):
    return build_account_roster(count, balance, prefix="acc_").get_accounts()


class ScriptedRandom(random.Random):
    """Returns a fixed sequence of amounts."""

    def __init__(self, amounts):
        super().__init__(0)
        self.amounts = list(amounts)

    def randint(self, a, b):
        return self.amounts.pop(0)


class TestRoundRobinSelection:
    """Test deterministic account selection."""

    def test_four_account_scenario(self):
        """Four accounts walk 0->2, 1->3, 2->0, 3->1."""
        accounts = make_accounts(4)
        generator = WorkloadGenerator(accounts, rng=random.Random(1))

        pairs = []
        for _ in range(4):
            request = generator.next()
            pairs.append((request.from_account, request.to_account))

        assert pairs == [
            ("acc_0", "acc_2"),
            ("acc_1", "acc_3"),
            ("acc_2", "acc_0"),
            ("acc_3", "acc_1"),
        ]
        assert generator.index == 4

    @pytest.mark.parametrize("count", [2, 3, 4, 5, 7, 10, 33])
    def test_source_never_equals_destination(self, count):
        generator = WorkloadGenerator(make_accounts(count), rng=random.Random(count))

        for _ in range(count * 3):
            request = generator.next()
            assert request.from_account != request.to_account

    @pytest.mark.parametrize("count", [2, 3, 6, 9])
    def test_round_robin_coverage(self, count):
        """Every account is a source and a destination exactly once per N calls."""
        generator = WorkloadGenerator(make_accounts(count), rng=random.Random(0))
        requests = [generator.next() for _ in range(count)]

        expected = sorted(f"acc_{n}" for n in range(count))
        assert sorted(r.from_account for r in requests) == expected
        assert sorted(r.to_account for r in requests) == expected

    def test_selection_continues_past_first_lap(self):
        generator = WorkloadGenerator(make_accounts(3), rng=random.Random(0))
        requests = [generator.next() for _ in range(5)]

        assert [r.from_account for r in requests] == ["acc_0", "acc_1", "acc_2", "acc_0", "acc_1"]
        assert [r.to_account for r in requests] == ["acc_1", "acc_2", "acc_0", "acc_1", "acc_2"]


class TestAmounts:
    """Test transfer amounts."""

    def test_amount_range(self):
        generator = WorkloadGenerator(make_accounts(4), rng=random.Random(7))

        amounts = [generator.next().amount for _ in range(2000)]

        assert all(isinstance(a, int) for a in amounts)
        assert min(amounts) >= 0
        assert max(amounts) <= 99

    def test_custom_max_amount(self):
        generator = WorkloadGenerator(make_accounts(2), max_amount=3, rng=random.Random(7))

        amounts = {generator.next().amount for _ in range(200)}

        assert amounts <= {0, 1, 2}

    def test_seeded_sequences_repeat(self):
        first = WorkloadGenerator(make_accounts(4), rng=random.Random(99))
        second = WorkloadGenerator(make_accounts(4), rng=random.Random(99))

        assert [first.next() for _ in range(20)] == [second.next() for _ in range(20)]

    def test_invalid_max_amount(self):
        with pytest.raises(ValueError):
            WorkloadGenerator(make_accounts(2), max_amount=0)

    def test_max_amount_above_limit_rejected(self):
        with pytest.raises(ValueError):
            WorkloadGenerator(make_accounts(2), max_amount=101)

    def test_full_range_stays_below_limit(self):
        generator = WorkloadGenerator(make_accounts(2), max_amount=100, rng=random.Random(11))

        assert all(generator.next().amount < 100 for _ in range(2000))

    def test_settings_reject_large_max_amount(self):
        with pytest.raises(ValidationError):
            TestingSettings(max_amount=1000)


class TestBookkeeping:
    """Test balance updates."""

    def test_balances_follow_transfers(self):
        accounts = make_accounts(4)
        generator = WorkloadGenerator(accounts, rng=ScriptedRandom([10, 20, 30, 40]))

        for _ in range(4):
            generator.next()

        # acc_0 sends 10, receives 30; acc_1 sends 20, receives 40; ...
        assert [a.balance for a in accounts] == [120, 120, 80, 80]

    def test_bookkeeping_identity(self):
        accounts = make_accounts(5, balance=50)
        initial = {a.account_id: a.balance for a in accounts}
        generator = WorkloadGenerator(accounts, rng=random.Random(3))

        expected = dict(initial)
        for _ in range(137):
            request = generator.next()
            expected[request.from_account] -= request.amount
            expected[request.to_account] += request.amount

        assert {a.account_id: a.balance for a in accounts} == expected
        assert sum(a.balance for a in accounts) == sum(initial.values())

    def test_balances_may_go_negative(self):
        accounts = make_accounts(2, balance=0)
        generator = WorkloadGenerator(accounts, rng=ScriptedRandom([99]))

        request = generator.next()

        assert request.amount == 99
        assert accounts[0].balance == -99
        assert accounts[1].balance == 99


class TestPreconditions:
    """Test roster precondition handling."""

    def test_single_account_rejected(self):
        with pytest.raises(RosterError):
            WorkloadGenerator([Account(account_id="only", balance=100)])

    def test_empty_roster_rejected(self):
        with pytest.raises(RosterError):
            WorkloadGenerator([])

    def test_roster_error_is_value_error(self):
        with pytest.raises(ValueError):
            WorkloadGenerator([])


class TestTransferRequest:
    """Test the produced request object."""

    def test_request_is_immutable(self):
        request = WorkloadGenerator(make_accounts(2)).next()

        with pytest.raises(Exception):
            request.amount = 5

    def test_raw_payload(self):
        request = TransferRequest(from_account="a", to_account="b", amount=12)

        assert request.transaction_type == "userTransfer"
        assert request.to_raw() == {
            "transaction_type": USER_TRANSFER_SIGNATURE,
            "from": "a",
            "to": "b",
            "num": 12,
        }

    def test_amount_must_be_below_limit(self):
        with pytest.raises(ValidationError):
            TransferRequest(from_account="a", to_account="b", amount=100)

    def test_serialized_with_aliases(self):
        request = TransferRequest(from_account="a", to_account="b", amount=1)

        assert request.model_dump(by_alias=True) == {
            "transaction_type": "userTransfer",
            "from": "a",
            "to": "b",
            "num": 1,
        }
