#!/usr/bin/env python3
"""Entry point for the idle economy tooling."""

from idle_economy.cli import main

if __name__ == "__main__":
    main()
