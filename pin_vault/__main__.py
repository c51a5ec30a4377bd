import sys

from pin_vault.main import run

sys.exit(run())
