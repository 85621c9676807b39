#!/usr/bin/env python3
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

print(
    f"[cowork] app={os.environ.get('CLAUDE_PATH', 'auto')} | "
    f"http_port={os.environ.get('HTTP_PORT', '7777')} | "
    f"cdp_port={os.environ.get('CDP_PORT', '9222')} | "
    f"bridge_dir={os.environ.get('BRIDGE_DIR', '~/cowork-bridge')}",
    file=sys.stderr,
)

from bridge_servers.cowork.main import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
