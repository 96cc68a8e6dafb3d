"""
Convenience entry point for running visitplanner directly.

Usage: python -m visitplanner [command] [options]
"""

from .cli.app import app

if __name__ == "__main__":
    app()
