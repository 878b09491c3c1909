import os


def addArgumentParserBaseFlags(parser, logfileName):
    '''
    Adds the flags shared by every jobpoller command: config file overrides,
    state directory and debug logging.

    Provides ALL flags required by the Config class.
    '''
    parser.add_argument(
        "-v",
        dest="verbose",
        help="Increase verbosity (multiple times for more verbose)",
        action="append_const",
        const=1)
    parser.add_argument(
        "-d",
        "--state-dir",
        dest='stateDir',
        metavar="DIR",
        help="Specify state directory (default='%(default)s')",
        default=os.getenv('JOBPOLLER_STATE_DIR', "~/.local/share/jobpoller"))
    parser.add_argument("--rc-file", dest="rcFile",
                        help="Specify path to rc-file (default=\"%(default)s\")",
                        default="~/.config/jobpollerrc")
    parser.add_argument(
        "--debug",
        nargs="?",
        const=True,
        default=False,
        metavar="FILE",
        help="enable debug output to <state-dir>/log/%s (or to FILE)" % logfileName)
