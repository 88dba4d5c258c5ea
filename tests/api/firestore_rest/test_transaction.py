from unittest.mock import AsyncMock, Mock

import pytest

from firestore_rest.exceptions import NotFoundError
from firestore_rest.transaction import OperationType, TransactionBatch


def make_ref(path: str, error: Exception | None = None) -> Mock:
    ref = Mock()
    ref.path = path
    ref.update = AsyncMock(side_effect=error)
    ref.set = AsyncMock(side_effect=error)
    ref.get = AsyncMock()
    return ref


@pytest.mark.asyncio
async def test_commit_replays_writes_in_order():
    calls = []
    first = make_ref("payments/p1")
    second = make_ref("users/alice")
    first.update.side_effect = lambda data: calls.append(("update", "payments/p1"))
    second.set.side_effect = lambda data, merge: calls.append(("set", "users/alice", merge))

    batch = TransactionBatch()
    batch.update(first, {"status": "approved"})
    batch.set(second, {"subscriptionStatus": "active"}, merge=True)
    await batch.commit()

    assert calls == [("update", "payments/p1"), ("set", "users/alice", True)]
    first.update.assert_awaited_once_with({"status": "approved"})
    second.set.assert_awaited_once_with({"subscriptionStatus": "active"}, merge=True)


@pytest.mark.asyncio
async def test_failure_keeps_earlier_writes_and_skips_later_ones():
    first = make_ref("users/alice")
    failing = make_ref("users/ghost", NotFoundError("missing", 404))
    third = make_ref("users/carol")

    batch = TransactionBatch().update(first, {"a": 1}).update(failing, {"a": 1}).set(third, {"a": 1})

    with pytest.raises(NotFoundError):
        await batch.commit()

    first.update.assert_awaited_once()
    failing.update.assert_awaited_once()
    third.set.assert_not_awaited()


def test_writes_are_queued_not_sent():
    ref = make_ref("users/alice")
    batch = TransactionBatch()

    batch.update(ref, {"plan": "pro"})
    batch.set(ref, {"plan": "free"})

    assert [op.type for op in batch.operations] == [OperationType.UPDATE, OperationType.SET]
    assert batch.operations[1].merge is False
    ref.update.assert_not_called()
    ref.set.assert_not_called()


def test_queued_data_is_copied():
    ref = make_ref("users/alice")
    data = {"plan": "pro"}
    batch = TransactionBatch().update(ref, data)

    data["plan"] = "free"

    assert batch.operations[0].data == {"plan": "pro"}


@pytest.mark.asyncio
async def test_get_reads_immediately():
    ref = make_ref("users/alice")
    ref.get.return_value = "snapshot"

    assert await TransactionBatch().get(ref) == "snapshot"
    ref.get.assert_awaited_once()
