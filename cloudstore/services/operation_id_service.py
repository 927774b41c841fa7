"""Per-operation context carried through logging.

A ``File`` call (one copy, one download) may issue many service requests; all
of them log under the same operation ID, operation name and object.
"""

import contextlib
import contextvars
import dataclasses
import uuid
from typing import Iterator
from typing import Optional


@dataclasses.dataclass(frozen=True)
class OperationContext:
    operation_id: str
    operation: str = "-"
    target: str = "-"


NO_OPERATION = OperationContext(operation_id="no-op-id")

operation_context: contextvars.ContextVar[OperationContext] = contextvars.ContextVar(
    "cloudstore_operation", default=NO_OPERATION
)


def generate_operation_id() -> str:
    """Generate a 16-character hex operation ID from UUID4.

    Returns:
        A 16-character lowercase hex string (first 64 bits of UUID4).
        Example: "a1b2c3d4e5f67890"
    """
    return uuid.uuid4().hex[:16]


def current_operation() -> OperationContext:
    return operation_context.get()


@contextlib.contextmanager
def operation_scope(
    operation: str = "-",
    target: str = "-",
    operation_id: Optional[str] = None,
) -> Iterator[OperationContext]:
    """Bind an operation to the current context for the duration of the block.

    Without an explicit ``operation_id`` a nested scope keeps the outer
    context, so a download started inside a caller's scope logs under the
    caller's ID.
    """
    current = operation_context.get()
    if operation_id is None and current is not NO_OPERATION:
        yield current
        return

    context = OperationContext(operation_id or generate_operation_id(), operation, target)
    token = operation_context.set(context)
    try:
        yield context
    finally:
        operation_context.reset(token)
