# PatternHub — Sessions
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Per-session outcome metrics and the insight generator built on them."""
