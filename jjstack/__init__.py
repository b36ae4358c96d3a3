"""
jjstack: land a stack of jj changes as GitHub pull requests.
"""
import logging
import sys

LOG_FORMAT = '%(asctime)s.%(msecs)03d [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

_LEVELS = [logging.WARNING, logging.INFO, logging.DEBUG]


def setup_logging(verbose: int = 0) -> None:
    """Point the root logger at stderr with a level picked by ``-v`` count.

    With no ``-v`` only warnings are shown so the progress display keeps the
    terminal; ``-v`` adds jj and GitHub calls, ``-vv`` everything.
    """
    root = logging.getLogger()
    root.setLevel(_LEVELS[max(0, min(verbose, len(_LEVELS) - 1))])

    # Replace handlers left over from earlier runs in the same process
    for old in list(root.handlers):
        root.removeHandler(old)

    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    root.addHandler(stream)
