#!/usr/bin/env python3
"""
Bio-Token Valuation - Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Runs the biotoken command line.

Direct execution:
    python app.py tokenize --recording-id 1 --account ALICE

Environment-based configuration (.env honoured):
    ISSUANCE_ADAPTER=mock BIOTOKEN_DATABASE_URL=sqlite:///ledger.db python app.py ...

============================================================
"""

import sys

from orchestrator.cli import main


if __name__ == "__main__":
    sys.exit(main())
