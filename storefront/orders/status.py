import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from ..common.config import settings
from ..common.errors import ValidationError
from . import store
from .model import OrderStatus

_logger = logging.getLogger(__name__)

VALID_STATUSES = tuple(s.value for s in OrderStatus)

# Forward-only lifecycle; CANCELED reachable from any non-terminal state
STRICT_TRANSITIONS: Mapping[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.CREATED: frozenset({OrderStatus.VIEWED, OrderStatus.COMPLETED, OrderStatus.CANCELED}),
    OrderStatus.VIEWED: frozenset({OrderStatus.COMPLETED, OrderStatus.CANCELED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELED: frozenset(),
}


def parse_status(value: Any) -> OrderStatus:
    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError(
            f"Invalid status: {value!r}. Allowed statuses: {', '.join(VALID_STATUSES)}"
        ) from None


class TransitionPolicy:
    """Decides which status changes are allowed.

    Without a table every change is accepted. With one, a change must be
    listed for the current status; re-setting the current status is always
    accepted.
    """

    def __init__(self, transitions: Optional[Mapping[OrderStatus, FrozenSet[OrderStatus]]] = None):
        self.transitions = transitions

    @classmethod
    def from_settings(cls) -> "TransitionPolicy":
        return cls(STRICT_TRANSITIONS if settings.STRICT_STATUS_TRANSITIONS else None)

    def allows(self, current: OrderStatus, new: OrderStatus) -> bool:
        if self.transitions is None or current == new:
            return True
        return new in self.transitions.get(current, frozenset())

    def check(self, current: OrderStatus, new: OrderStatus) -> None:
        if not self.allows(current, new):
            raise ValidationError(f"Cannot change status from {current.value} to {new.value}")


def project_items(order: Dict[str, Any]) -> Dict[str, Any]:
    """Attach a display-ready ``product`` summary to each item from its own snapshot."""
    items = []
    for item in order.get("items", []):
        items.append(
            {
                **item,
                "product": {
                    "id": item["product_id"],
                    "name": item.get("name") or settings.DEFAULT_ITEM_NAME,
                    "sku": "",
                    "image": item.get("image_url") or "",
                },
            }
        )
    return {**order, "items": items}


async def change_status(order_id: int, new_status: Any, policy: Optional[TransitionPolicy] = None) -> Dict[str, Any]:
    status = parse_status(new_status)
    policy = policy or TransitionPolicy.from_settings()
    order = await store.set_status(order_id, status, check=policy.check)
    return project_items(order)
