from __future__ import annotations

from services.mc_ctl.ctl import main

if __name__ == "__main__":
    raise SystemExit(main())
