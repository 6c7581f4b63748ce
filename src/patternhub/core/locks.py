# PatternHub
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of PatternHub.
#
# PatternHub is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Per-id mutual exclusion.

Read-modify-write cycles on one pattern or session must not interleave,
while work on different ids proceeds in parallel. ``KeyedLock`` hands out
one ``threading.Lock`` per key. A lock lives only while someone holds a
reference to it, so ids that are no longer in use do not accumulate.
"""

from __future__ import annotations

import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager


class KeyedLock:
    """A lazily populated map of id -> lock.

    Usage::

        locks = KeyedLock()
        with locks.hold("lru-cache"):
            ...  # exclusive for this id only
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def lock_for(self, key: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        """Number of locks currently referenced."""
        with self._guard:
            return len(self._locks)
