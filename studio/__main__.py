#!/usr/bin/env python3
"""
Entry point for the studio CLI.

Run with: python -m studio
"""

from .cli import cli

if __name__ == '__main__':
    cli()
