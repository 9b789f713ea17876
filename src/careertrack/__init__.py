"""careertrack: application status pipeline, event log and derived analytics."""

from __future__ import annotations

__all__ = []
