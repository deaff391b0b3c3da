"""Main module for blogwatcher.

This module allows the CLI to be run as a Python module using:
python -m blogwatcher
"""

from blogwatcher.cli import main

if __name__ == "__main__":
    main()
