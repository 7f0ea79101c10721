"""
Entry point for ``python -m autocommit``.
"""

from autocommit.cli import main


if __name__ == "__main__":
    main()
