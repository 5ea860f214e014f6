"""Local runner for the biofeedback core with src/ layout.

Usage: python run_app.py [--device 0] [--fps 30]
"""

from __future__ import annotations

import sys
from pathlib import Path


def main() -> None:
    # Ensure src/ is on sys.path so `import biofeedback` resolves
    root = Path(__file__).resolve().parent
    src = root / "src"
    if src.exists():
        sys.path.insert(0, str(src))
    from biofeedback.app import main as app_main  # type: ignore

    app_main()


if __name__ == "__main__":
    main()
