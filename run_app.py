"""Local runner for pulse_rppg with src/ layout.

Usage: python run_app.py demo
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    # Ensure src/ is on sys.path so `import pulse_rppg` resolves
    root = Path(__file__).resolve().parent
    src = root / "src"
    if src.exists():
        sys.path.insert(0, str(src))
    from pulse_rppg.app import main as app_main  # type: ignore

    sys.exit(app_main())


if __name__ == "__main__":
    main()
