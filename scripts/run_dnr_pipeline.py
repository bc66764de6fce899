#!/usr/bin/env python3
"""``dnr`` Divide & Recombine Pipeline Runner.

Usage:
    python scripts/run_dnr_pipeline.py scripts/user_config.py
    python scripts/run_dnr_pipeline.py scripts/user_config.py --records data/2008.csv
    python scripts/run_dnr_pipeline.py scripts/user_config.py --max-workers 8 --format csv

Note: User config in scripts/user_config.py, expert defaults in src/dnr/schemas/param.py
"""

import sys
from pathlib import Path

# Add src to path
project_root = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(project_root / "src"))

from dnr.cli import main


if __name__ == "__main__":
    sys.exit(main())
