#!/usr/bin/env python3
"""
dbn-cli.py: wrapper for the `dbn_research.cli.main` module.
Runs CLI commands from the project root without installing the package.
"""
import sys
import os

# Ensure the current directory is in sys.path so dbn_research can be imported
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from dbn_research.cli.main import main  # noqa: E402


if __name__ == "__main__":
    main()
