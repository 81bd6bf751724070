import sys

from git2stats.core import main

if __name__ == "__main__":
    sys.exit(main())
