"""
Script to run the importer from a source checkout
"""

import sys
import os

# Add current directory to path to allow imports from core, importer
sys.path.append(os.getcwd())

from importer.cli import app


if __name__ == "__main__":
    app()
