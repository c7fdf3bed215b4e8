"""Unit tests for policy scope derivation and permission merging."""

from __future__ import annotations

import random
from datetime import UTC, datetime

from onchain_workflows.chains import TESTING_REGISTRY_ADDRESS
from onchain_workflows.workflow.abi import parse_function
from onchain_workflows.workflow.policy import (
    ArgRestriction,
    CallPolicy,
    Permission,
    RateLimitPolicy,
    TimestampPolicy,
    accounting_permission,
    build_policies,
    merge_permissions,
    policies_to_json,
    step_permission,
)
from onchain_workflows.workflow.types import Account, ConditionOperator, Job, Step, Workflow

OWNER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x3333333333333333333333333333333333333333"
ALICE = "0x4444444444444444444444444444444444444444"
BOB = "0x6666666666666666666666666666666666666666"

EQUAL = ConditionOperator.EQUAL
ONE_OF = ConditionOperator.ONE_OF
TRANSFER = "transfer(address to, uint256 amount)"


def _transfer(to: str, amount: int, value: int = 0) -> Permission:
    return step_permission(Step(target=TOKEN, signature=TRANSFER, args=(to, amount), value=value))


def test_step_permission_pins_literals_and_frees_strings() -> None:
    step = Step(target=TOKEN, signature="register(string name, uint256 id)", args=("neo", 5))

    permission = step_permission(step)

    assert permission.target == TOKEN
    assert permission.value_limit == 0
    assert permission.function_name == "register"
    assert permission.function_abi == parse_function("register(string name, uint256 id)")
    assert permission.args == (None, ArgRestriction(EQUAL, 5))


def test_step_permission_for_plain_transfer() -> None:
    permission = step_permission(Step(target=ALICE, value=10))

    assert permission.function_abi is None
    assert permission.function_name == ""
    assert permission.args == ()
    assert permission.value_limit == 10


def test_accounting_permission_is_unrestricted() -> None:
    permission = accounting_permission(TESTING_REGISTRY_ADDRESS)

    assert permission.target == TESTING_REGISTRY_ADDRESS
    assert permission.function_name == "markRunWithMetadata"
    assert permission.args == (None, None, None)
    assert permission.value_limit == 0


def test_single_permission_passes_through() -> None:
    permission = _transfer(ALICE, 1)

    assert merge_permissions([permission]) == [permission]


def test_merge_collapses_literals_into_distinct_one_of() -> None:
    permissions = [
        _transfer(ALICE, 1),
        _transfer(ALICE, 2),
        _transfer(ALICE, 1),
        _transfer(ALICE, 3),
        _transfer(ALICE, 2),
    ]

    merged = merge_permissions(permissions)

    assert len(merged) == 1
    assert merged[0].args == (
        ArgRestriction(ONE_OF, (ALICE,)),
        ArgRestriction(ONE_OF, (1, 2, 3)),
    )
    assert merged[0].function_name == "transfer"


def test_merge_value_set_is_independent_of_order_and_size() -> None:
    amounts = [5, 9, 5, 7, 9, 9, 5]
    rng = random.Random(7)

    for size in range(2, len(amounts) + 1):
        sample = amounts[:size]
        shuffled = sample[:]
        rng.shuffle(shuffled)
        merged = merge_permissions([_transfer(BOB, amount) for amount in shuffled])

        assert len(merged) == 1
        restriction = merged[0].args[1]
        assert restriction is not None
        assert restriction.condition is ONE_OF
        assert sorted(restriction.value) == sorted(set(sample))


def test_merged_value_limit_is_group_maximum() -> None:
    merged = merge_permissions([_transfer(ALICE, 1, value=5), _transfer(ALICE, 2, value=50)])

    assert merged[0].value_limit == 50


def test_merge_keeps_groups_with_different_arity_verbatim() -> None:
    abi_function = parse_function(TRANSFER)
    short = Permission(
        target=TOKEN,
        value_limit=0,
        function_abi=abi_function,
        function_name="transfer",
        args=(ArgRestriction(EQUAL, ALICE),),
    )
    full = _transfer(BOB, 4)

    assert merge_permissions([short, full]) == [short, full]


def test_merge_keeps_mixed_restrictions_verbatim() -> None:
    abi_function = parse_function(TRANSFER)
    free_recipient = Permission(
        target=TOKEN,
        value_limit=0,
        function_abi=abi_function,
        function_name="transfer",
        args=(None, ArgRestriction(EQUAL, 1)),
    )
    pinned = _transfer(ALICE, 2)

    assert merge_permissions([free_recipient, pinned]) == [free_recipient, pinned]


def test_merge_keeps_unconstrained_positions_unconstrained() -> None:
    register = "register(string,uint256)"
    name_a = step_permission(Step(target=TOKEN, signature=register, args=("a", 1)))
    name_b = step_permission(Step(target=TOKEN, signature=register, args=("b", 2)))

    merged = merge_permissions([name_a, name_b])

    assert merged[0].args == (None, ArgRestriction(ONE_OF, (1, 2)))


def test_merge_groups_targets_case_insensitively() -> None:
    target = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
    lower = step_permission(Step(target=target, signature=TRANSFER, args=(ALICE, 1)))
    upper = step_permission(
        Step(target="0x" + target[2:].upper(), signature=TRANSFER, args=(ALICE, 2))
    )

    merged = merge_permissions([lower, upper])

    assert len(merged) == 1
    assert merged[0].target == lower.target


def test_merge_does_not_mix_different_functions_or_targets() -> None:
    approve = step_permission(
        Step(target=TOKEN, signature="approve(address,uint256)", args=(ALICE, 1))
    )
    other_target = step_permission(Step(target=BOB, signature=TRANSFER, args=(ALICE, 1)))
    transfer = _transfer(ALICE, 1)

    assert merge_permissions([transfer, approve, other_target]) == [transfer, approve, other_target]


def test_build_policies_adds_accounting_rate_limit_and_window() -> None:
    valid_after = datetime(2025, 1, 1, tzinfo=UTC)
    valid_until = datetime(2025, 2, 1, tzinfo=UTC)
    job = Job(
        id="pay",
        chain_id=1,
        steps=(
            Step(target=TOKEN, signature=TRANSFER, args=(ALICE, 1)),
            Step(target=TOKEN, signature=TRANSFER, args=(ALICE, 2)),
        ),
    )
    workflow = Workflow(
        owner=Account(address=OWNER),
        jobs=(job,),
        count=3,
        interval=60,
        valid_after=valid_after,
        valid_until=valid_until,
    )

    policies = build_policies(workflow, job, registry_address=TESTING_REGISTRY_ADDRESS)

    call_policy, rate_limit, window = policies
    assert isinstance(call_policy, CallPolicy)
    assert [p.function_name for p in call_policy.permissions] == ["transfer", "markRunWithMetadata"]
    assert call_policy.permissions[-1] == accounting_permission(TESTING_REGISTRY_ADDRESS)
    assert rate_limit == RateLimitPolicy(count=3, interval=60)
    assert window == TimestampPolicy(
        valid_after=int(valid_after.timestamp()), valid_until=int(valid_until.timestamp())
    )


def test_build_policies_without_limits_has_only_call_policy() -> None:
    job = Job(id="pay", chain_id=1, steps=(Step(target=ALICE, value=1),))
    workflow = Workflow(owner=Account(address=OWNER), jobs=(job,))

    policies = build_policies(workflow, job, registry_address=TESTING_REGISTRY_ADDRESS)

    assert len(policies) == 1
    assert isinstance(policies[0], CallPolicy)


def test_rate_limit_without_interval_and_open_window() -> None:
    job = Job(id="pay", chain_id=1, steps=(Step(target=ALICE, value=1),))
    valid_until = datetime(2030, 1, 1, tzinfo=UTC)
    workflow = Workflow(owner=Account(address=OWNER), jobs=(job,), count=2, valid_until=valid_until)

    policies = build_policies(workflow, job, registry_address=TESTING_REGISTRY_ADDRESS)

    assert policies[1] == RateLimitPolicy(count=2)
    assert policies[2] == TimestampPolicy(valid_until=int(valid_until.timestamp()))


def test_policies_to_json() -> None:
    step = Step(target=TOKEN, signature=TRANSFER, args=(ALICE, 10**20))
    job = Job(id="pay", chain_id=1, steps=(step,))
    workflow = Workflow(owner=Account(address=OWNER), jobs=(job,), count=1)

    policies = build_policies(workflow, job, registry_address=TESTING_REGISTRY_ADDRESS)

    payload = policies_to_json(policies)

    assert payload[0]["type"] == "call"
    assert payload[0]["permissions"][0]["args"] == [
        {"condition": "EQUAL", "value": ALICE},
        {"condition": "EQUAL", "value": str(10**20)},
    ]
    assert payload[0]["permissions"][0]["valueLimit"] == "0"
    assert payload[1] == {"type": "rate-limit", "count": 1}
