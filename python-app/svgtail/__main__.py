"""
Package Entry Point.

Allows the package to be executed directly using `python -m svgtail`.
"""

from .app import run

if __name__ == "__main__":
    run()
