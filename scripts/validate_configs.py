"""Check every engine YAML under configs/ against its pydantic schema."""
from __future__ import annotations

import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parents[1]
if str(repo_root / "src") not in sys.path:
    sys.path.insert(0, str(repo_root / "src"))

from gridoutlook.utils.config import ConfigError, load_engine_config, validate_config


def main(cfg_dir: str = "configs") -> None:
    root = Path(cfg_dir)
    if not root.is_dir():
        raise SystemExit(f"Missing {root} directory.")

    failed: list[Path] = []
    for path in sorted(root.glob("*.yaml")):
        try:
            validate_config(path)
        except ConfigError as exc:
            failed.append(path)
            print(f"[config] FAIL: {exc}")
            continue
        print(f"[config] OK: {path}")

    engine_cfg = root / "forecast_engine.yaml"
    if engine_cfg.exists() and engine_cfg not in failed:
        cfg = load_engine_config(engine_cfg)
        grids = ", ".join(g.name for g in cfg.grids)
        print(f"[config] grids: {grids}; demand horizon {cfg.demand.horizon_months} months")

    if failed:
        raise SystemExit(f"{len(failed)} config file(s) invalid.")


if __name__ == "__main__":
    main(*sys.argv[1:2])
