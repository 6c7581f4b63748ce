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
"""
PatternHub -- Cross-Project Pattern Intelligence Engine

A local, persistent knowledge base for reusable code patterns, per-session
outcome metrics and per-project knowledge snapshots. Entry point for
callers is ``IntelligenceCoordinator``.
"""

__version__ = "1.0.0"

__all__ = ["__version__"]
