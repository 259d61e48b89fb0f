"""
Entry point script for the frozen PyInstaller application.

This script acts as the bootstrap loader for the Leggio reader when
packaged as a standalone executable. It imports the main run function
from the application package and executes it.
"""

from leggio.app import run

if __name__ == "__main__":
    run()
