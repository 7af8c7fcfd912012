"""
Enrollment domain constants.

A cart entry carries no marker until a settlement flips it to "enrolled";
the flip is one-way.
"""

from __future__ import annotations

ENROLLED_MARKER = "enrolled"

__all__ = ["ENROLLED_MARKER"]
