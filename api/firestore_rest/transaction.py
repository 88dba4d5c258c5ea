"""
A sequential write batch standing in for a store transaction.

The batch records writes and replays them one at a time on ``commit``. It is NOT
atomic and NOT isolated: when write k fails, writes 1..k-1 stay applied and
writes k+1..n are never sent. Reads made through the batch are plain reads.
"""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from logging import getLogger
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from firestore_rest.models.document import DocumentSnapshot
    from firestore_rest.references import DocumentReference

logger = getLogger(__name__)


class OperationType(str, Enum):
    UPDATE = "update"
    SET = "set"


@dataclass(frozen=True)
class TransactionOp:
    type: OperationType
    ref: DocumentReference
    data: Mapping[str, Any]
    merge: bool = False

    async def apply(self) -> None:
        if self.type is OperationType.UPDATE:
            await self.ref.update(self.data)
        else:
            await self.ref.set(self.data, merge=self.merge)


class TransactionBatch:
    def __init__(self) -> None:
        self.operations: list[TransactionOp] = []

    async def get(self, ref: DocumentReference) -> DocumentSnapshot:
        return await ref.get()

    def update(self, ref: DocumentReference, data: Mapping[str, Any]) -> TransactionBatch:
        self.operations.append(TransactionOp(OperationType.UPDATE, ref, dict(data)))
        return self

    def set(self, ref: DocumentReference, data: Mapping[str, Any], merge: bool = False) -> TransactionBatch:
        self.operations.append(TransactionOp(OperationType.SET, ref, dict(data), merge))
        return self

    async def commit(self) -> None:
        """
        Apply the queued writes in order, waiting for each before sending the next.

        The first failing write stops the commit and its error propagates. Writes
        already applied are not rolled back.
        """
        for index, operation in enumerate(self.operations):
            try:
                await operation.apply()
            except Exception:
                logger.error(
                    "Transaction write %s/%s (%s %s) failed, %s earlier write(s) stay applied",
                    index + 1,
                    len(self.operations),
                    operation.type.value,
                    operation.ref.path,
                    index,
                )
                raise
        logger.debug("Committed %s transaction write(s)", len(self.operations))
