"""
Main entry point for the agentrelay CLI.

This module is executed when running `python -m agentrelay` or via the `agentrelay` executable.
"""

from .cli import app


def main():
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
