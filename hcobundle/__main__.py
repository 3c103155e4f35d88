"""Allow ``python -m hcobundle``."""

from hcobundle.cli import main

if __name__ == "__main__":
    main()
