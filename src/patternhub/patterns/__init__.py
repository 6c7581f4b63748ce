# PatternHub — Patterns
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Code pattern storage, indexing, search and interchange."""
