"""Shared pytest configuration."""

from __future__ import annotations

import sys
from pathlib import Path

# Tests import ``app`` from the project root when no editable install exists.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))
