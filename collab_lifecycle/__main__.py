import sys

from .recorder import run

sys.exit(run())
