"""
tests/test_policy.py -- Unit tests for tasks/policy.py.

The policy is pure: no stores, no app. Identities and tasks are built inline.
"""

from __future__ import annotations

import pytest

from auth.models import Identity, Role
from core.errors import AdminRequired, Forbidden, NotFound
from tasks.models import Status, Task, TaskFilter
from tasks.policy import ALLOW, Decision, Denial, Operation, decide, enforce, resolve_owner, scope_filter

ALICE = Identity(id="alice", email="alice@example.com", role=Role.USER)
BOB = Identity(id="bob", email="bob@example.com", role=Role.USER)
ADMIN = Identity(id="root", email="admin@example.com", role=Role.ADMIN)

ALICE_TASK = Task(id="t1", title="Buy milk", owner_id="alice")

SINGLE_TASK_OPS = [Operation.READ, Operation.UPDATE, Operation.DELETE]


class TestSingleTask:
    @pytest.mark.parametrize("op", SINGLE_TASK_OPS)
    def test_owner_allowed(self, op: Operation) -> None:
        assert decide(ALICE, op, ALICE_TASK) == ALLOW

    @pytest.mark.parametrize("op", SINGLE_TASK_OPS)
    def test_admin_allowed_on_any_task(self, op: Operation) -> None:
        assert decide(ADMIN, op, ALICE_TASK) == ALLOW

    @pytest.mark.parametrize("op", SINGLE_TASK_OPS)
    def test_non_owner_forbidden(self, op: Operation) -> None:
        decision = decide(BOB, op, ALICE_TASK)
        assert not decision
        assert decision.reason is Denial.FORBIDDEN

    @pytest.mark.parametrize("actor", [ALICE, BOB, ADMIN])
    def test_missing_task_is_not_found_for_every_role(self, actor: Identity) -> None:
        """Existence is checked before ownership, so even admins get NOT_FOUND."""
        assert decide(actor, Operation.READ, None) == Decision(allowed=False, reason=Denial.NOT_FOUND)

    def test_not_found_and_forbidden_are_distinguishable(self) -> None:
        missing = decide(BOB, Operation.READ, None)
        other = decide(BOB, Operation.READ, ALICE_TASK)
        assert missing.reason is not other.reason

    def test_operation_accepts_string_value(self) -> None:
        assert decide(BOB, "update", ALICE_TASK).reason is Denial.FORBIDDEN


class TestCollectionOps:
    @pytest.mark.parametrize("actor", [ALICE, ADMIN])
    def test_list_and_create_always_allowed(self, actor: Identity) -> None:
        assert decide(actor, Operation.LIST) == ALLOW
        assert decide(actor, Operation.CREATE) == ALLOW

    def test_stats_admin_only(self) -> None:
        assert decide(ADMIN, Operation.STATS) == ALLOW
        assert decide(ALICE, Operation.STATS).reason is Denial.ADMIN_REQUIRED


class TestEnforce:
    def test_allowed_returns_none(self) -> None:
        assert enforce(ALICE, Operation.UPDATE, ALICE_TASK) is None

    def test_raises_matching_errors(self) -> None:
        with pytest.raises(NotFound):
            enforce(ALICE, Operation.READ, None)
        with pytest.raises(Forbidden) as excinfo:
            enforce(BOB, Operation.DELETE, ALICE_TASK)
        assert "delete" in excinfo.value.message
        with pytest.raises(AdminRequired):
            enforce(BOB, Operation.STATS)


class TestScoping:
    def test_user_scope_pins_owner(self) -> None:
        base = TaskFilter(status=Status.PENDING, owner_id="someone-else")
        scoped = scope_filter(ALICE, base)
        assert scoped.owner_id == "alice", "Non-admin scope must override any requested owner"
        assert scoped.status is Status.PENDING

    def test_admin_scope_unchanged(self) -> None:
        base = TaskFilter(search="milk")
        assert scope_filter(ADMIN, base) is base

    def test_resolve_owner_always_actor(self) -> None:
        assert resolve_owner(ALICE) == "alice"
        assert resolve_owner(ALICE, "bob") == "alice"
        assert resolve_owner(ADMIN, "alice") == "root"
