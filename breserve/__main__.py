import sys

from breserve.cli import main

if __name__ == "__main__":
    sys.exit(main())
