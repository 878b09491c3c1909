import logging
import os
import sys

FMT = (
    '+%(process)-6d %(levelname)-9s '
    '%(name)-20s %(filename)20s:%(lineno)-5d '
    '[%(asctime)s] %(message)s')


def getLogger(name):
    return logging.getLogger(name)


def setup(logDir, debugLogFileName, debug=False, verbose=0):
    """
    Configure the root logger.

    debug may be True (log to <logDir>/<debugLogFileName>) or a file path.
    Without debug, INFO goes to stderr when verbose, WARNING otherwise.
    """
    if debug:
        if isinstance(debug, str):
            logFileName = os.path.expanduser(debug)
        else:
            logFileName = os.path.join(logDir, debugLogFileName)
        logging.basicConfig(
            filename=logFileName,
            level=logging.DEBUG,
            format=FMT)
    else:
        level = logging.INFO if verbose else logging.WARNING
        logging.basicConfig(stream=sys.stderr, level=level, format=FMT)
