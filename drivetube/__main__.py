import sys

from drivetube.main import main

if __name__ == "__main__":
    sys.exit(main())
