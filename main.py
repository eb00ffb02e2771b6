"""
Entry point for oorep-seed.

Run with:
    python main.py seed --file oorep.sql.gz
    python main.py verify
"""
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from oorep_seed.cli.main import main

if __name__ == "__main__":
    main()
