import sys

from lintforge.cli import run_cli

sys.exit(run_cli())
