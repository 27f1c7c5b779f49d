import sys
from tag_analyzer.console import main


if __name__ == "__main__":
    sys.exit(main())
