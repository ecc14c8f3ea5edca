"""Allow running as: python -m migration_assist"""

import sys

from migration_assist.main import main

if __name__ == "__main__":
    main(sys.argv[1:])
