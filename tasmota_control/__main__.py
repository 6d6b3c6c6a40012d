"""
Entry point for Tasmota Control.

Usage: python -m tasmota_control <command>
"""

from .main import main

if __name__ == "__main__":
    raise SystemExit(main())
