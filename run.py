#!/usr/bin/env python3
"""Run the validator exporter from a source checkout without installing it."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent / "src"))

from validator_exporter.main import run  # noqa: E402

if __name__ == "__main__":
    run()
