"""Package entry point for ``python -m darija_captions``."""

from darija_captions.cli import main

if __name__ == "__main__":
    main()
