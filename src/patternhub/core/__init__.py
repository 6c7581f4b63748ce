# PatternHub — Core
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Shared building blocks: activity log, event bus, per-id locks, timestamps."""
