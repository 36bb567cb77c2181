"""Allow `python -m tallyboard`."""

from tallyboard.cli import run

run()
