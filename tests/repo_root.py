from __future__ import annotations

from pathlib import Path

# Tests live at <repo>/tests/ so repo root is 1 parent above.
REPO_ROOT = Path(__file__).resolve().parents[1]
