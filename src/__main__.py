"""
Entry point for running dns_speed as a module.

Usage: python -m dns_speed [OPTIONS]
"""

from .cli import main

if __name__ == "__main__":
    main()
