"""Allow ``python -m furca``."""

from __future__ import annotations

from furca.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
