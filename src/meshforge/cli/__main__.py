"""CLI entry point for meshforge.cli module.

Enables execution via: python -m meshforge.cli "red ceramic vase"
"""

from meshforge.cli.generate import main

if __name__ == "__main__":
    main()
