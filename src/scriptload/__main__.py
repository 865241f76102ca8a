import sys

from scriptload.cli import main

sys.exit(main())
