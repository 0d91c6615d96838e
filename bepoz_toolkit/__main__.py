import sys

from bepoz_toolkit.main import main


if __name__ == "__main__":
    sys.exit(main())
