"""Module entrypoint for the paper-trading TUI.

Run:
  python -m papertrader
"""

from __future__ import annotations

from .main import main


if __name__ == "__main__":
    main()
