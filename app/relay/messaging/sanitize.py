"""Strip channel-assigned routing metadata from activities."""

from __future__ import annotations

import copy

from botbuilder.schema import Activity

# Attribute names on botbuilder's Activity model.
ROUTING_FIELDS: tuple[str, ...] = (
    "channel_id",
    "conversation",
    "from_property",
    "id",
    "recipient",
    "service_url",
    "timestamp",
)


def clean_activity(activity: Activity) -> Activity:
    """Return a shallow copy of *activity* with routing fields cleared.

    The receiving transport assigns its own values for these fields.
    """
    cleaned = copy.copy(activity)
    for name in ROUTING_FIELDS:
        setattr(cleaned, name, None)
    return cleaned
