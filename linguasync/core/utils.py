"""
Shared utility functions for linguasync.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.
    
    Args:
        prefix: Optional prefix (e.g., "item", "grp")
        
    Returns:
        A unique ID like "item_a1b2c3d4e5f6"
    """
    uid = str(uuid.uuid4())[:12]
    return f"{prefix}_{uid}" if prefix else uid


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def epoch_now() -> int:
    """Current time as whole seconds since the epoch (ledger timestamps)."""
    return int(time.time())
