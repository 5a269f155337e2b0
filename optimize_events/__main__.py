"""Entry point for ``python -m optimize_events``."""
from optimize_events.cli import main

if __name__ == "__main__":
    main()
