"""Inbound webhook heartbeat monitoring for Herald.

Example:
    ```python
    from herald.heartbeat import HeartbeatMonitor

    monitor = HeartbeatMonitor.from_settings(storage, settings)
    result = await monitor.check_health()
    ```

Run as a long-lived process:
    ```bash
    python -m herald.heartbeat
    ```
"""

from .hubspot import HubSpotSubscriptionManager, build_self_test_batch
from .inbound import InboundBatchResult, ProcessedEventCache, process_batch
from .monitor import HeartbeatMonitor
from .notify import AlertNotifier, format_chat_text

__all__ = [
    "AlertNotifier",
    "HeartbeatMonitor",
    "HubSpotSubscriptionManager",
    "InboundBatchResult",
    "ProcessedEventCache",
    "build_self_test_batch",
    "format_chat_text",
    "process_batch",
]
