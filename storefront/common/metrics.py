from prometheus_client import Counter


ORDERS_CREATED = Counter("orders_created_total", "Orders persisted through checkout")
STATUS_CHANGES = Counter("order_status_changes_total", "Order status updates", ["status"])
OPERATION_FAILURES = Counter(
    "order_operation_failures_total",
    "Order operations that returned a failed result",
    ["operation", "code"],
)
