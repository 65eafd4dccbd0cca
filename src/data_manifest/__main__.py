from __future__ import annotations

from data_manifest.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
