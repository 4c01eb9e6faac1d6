from __future__ import annotations

import uuid


def new_subscription_id() -> str:
    return uuid.uuid4().hex[:16]
