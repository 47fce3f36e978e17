import sys

from cymascope.cli import main

sys.exit(main())
