"""Run one forecast generation against the local DuckDB store."""
from __future__ import annotations

import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root / "src") not in sys.path:
    sys.path.insert(0, str(repo_root / "src"))

from gridoutlook.pipeline.run import main


if __name__ == "__main__":
    main()
