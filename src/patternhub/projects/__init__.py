# PatternHub — Projects
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Project knowledge snapshots, similarity and learning transfer."""
