"""
Main entry point for the agentloop CLI.

This module is executed when running `python -m agentloop` or via the `agentloop` executable.
"""

from .cli import main

if __name__ == "__main__":
    main()
