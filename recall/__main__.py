"""
Entry point for running recall as a module.

Usage:
    python -m recall card-id "Atomic Habits" "James Clear" "Every action..."
    python -m recall simulate good good easy
    python -m recall --help
"""
from .cli import main

if __name__ == "__main__":
    main()
