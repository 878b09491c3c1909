import configparser
import os

from dateutil import tz

from jobpoller.errors import ConfigError

RC_FILE_HELP = """\
Sample rcfile:
    [scheduler]
    interval seconds = 300       # default=300 (every 5 minutes)
    max workers = 1              # jobs run concurrently per tick, default=1
    job timeout seconds = 60     # per-job deadline, 0 disables, default=60
    lease seconds = 600          # default=600
    schedule gating = true|false # only run jobs whose schedule matches, default false
    timezone = Asia/Taipei       # zone job schedules are written in
    [store]
    driver = sqlite|memory       # default=sqlite
    path = ~/jobs.sqlite         # default=<state-dir>/db/jobpoller.sqlite
    [delivery]
    url = https://delivery.example.com/send-text-message
    timeout seconds = 10
    token = <bearer token>
"""

__all__ = ["Config", "ConfigEnum", "ConfigError", "RC_FILE_HELP", "STORE_DRIVER"]


class ConfigEnum(object):
    __slots__ = (
        'defaultName',
        '_enumVals',
    )

    def __init__(self, default, **enumVals):
        self._enumVals = enumVals
        assert default in enumVals
        self.defaultName = default
        for enumName in enumVals:
            assert enumName not in self.__slots__

    def names(self):
        return iter(self._enumVals.keys())

    def values(self):
        return iter(self._enumVals.values())

    @property
    def defaultVal(self):
        return self._enumVals[self.defaultName]

    def __getattr__(self, attr):
        assert attr != '_enumVals'
        if attr in self._enumVals:
            return self._enumVals[attr]
        else:
            return object.__getattribute__(self, attr)


STORE_DRIVER = ConfigEnum(
    'SQLITE',  # default
    SQLITE='sqlite',
    MEMORY='memory',
)

DEFAULT_DELIVERY_URL = "http://localhost:8080/send-text-message"
DEFAULT_TIMEZONE = "Asia/Taipei"


def _getConfig(cfgParser, section, option, defaultValue=None):
    if not cfgParser.has_section(section):
        return defaultValue
    if not cfgParser.has_option(section, option):
        return defaultValue
    return cfgParser.get(section, option)


def _getEnumConfig(cfgParser, section, option, enum):
    optionVal = _getConfig(
        cfgParser, section, option, enum.defaultVal)
    if optionVal not in list(enum.values()):
        raise ConfigError(
            "RC file has invalid \"{section}.{option}\" setting {optionVal}.  Valid "
            "options: {allowedVals}".format(
                section=section,
                option=option,
                optionVal=optionVal,
                allowedVals=", ".join(list(enum.values()))))

    return optionVal


def _getBoolConfig(cfgParser, section, option, default):
    val = _getConfig(cfgParser, section, option, None)
    if val is None:
        return default
    if val.lower() == 'true':
        return True
    elif val.lower() == 'false':
        return False
    else:
        raise ConfigError(
            "RC file has invalid \"{section}.{option}\" setting {optionVal}.  Valid "
            "options: true, false".format(
                section=section,
                option=option,
                optionVal=val))


def _getNumberConfig(cfgParser, section, option, default, minimum=0, cast=int):
    val = _getConfig(cfgParser, section, option, None)
    if val is None:
        return default
    try:
        num = cast(val)
    except ValueError:
        num = None
    if num is None or num < minimum:
        raise ConfigError(
            "RC file has invalid \"{section}.{option}\" setting {optionVal}.  "
            "Expected a number >= {minimum}".format(
                section=section,
                option=option,
                optionVal=val,
                minimum=minimum))
    return num


class Config(object):
    # pylint: disable=too-many-instance-attributes
    validConfig = {
        'scheduler': {
            'interval seconds', 'max workers', 'job timeout seconds',
            'lease seconds', 'schedule gating', 'timezone',
        },
        'store': {'driver', 'path'},
        'delivery': {'url', 'timeout seconds', 'token'},
    }

    def _validateConfigParser(self, cfgParser):
        cfgSections = set(cfgParser.sections())
        unknownSections = cfgSections - set(self.validConfig.keys())
        if unknownSections:
            raise ConfigError(
                "RC file has unknown configuration sections: {}".format(
                    ", ".join(sorted(unknownSections))))
        for section in cfgSections:
            cfgValues = set(cfgParser.options(section))
            unknownOptions = cfgValues - self.validConfig[section]
            if unknownOptions:
                raise ConfigError(
                    "RC file has unknown configuration options in "
                    "section \"{}\": {}".format(
                        section, ", ".join(sorted(unknownOptions))))

    def __init__(self, options):
        stateDir = options.stateDir
        self.options = options
        self._dbDir = os.path.expanduser(stateDir) + "/db/"
        self._logDir = os.path.expanduser(stateDir) + "/log/"

        rcFile = os.path.expanduser(options.rcFile)
        cfgParser = configparser.RawConfigParser(inline_comment_prefixes=('#',))
        try:
            cfgParser.read(rcFile)
        except configparser.Error as error:
            raise ConfigError("RC file {} is malformed: {}".format(rcFile, error))
        self._validateConfigParser(cfgParser)

        self._intervalSeconds = _getNumberConfig(
            cfgParser, 'scheduler', 'interval seconds', 300, minimum=1)
        self._maxWorkers = _getNumberConfig(
            cfgParser, 'scheduler', 'max workers', 1, minimum=1)
        self._jobTimeoutSeconds = _getNumberConfig(
            cfgParser, 'scheduler', 'job timeout seconds', 60.0, cast=float)
        self._leaseSeconds = _getNumberConfig(
            cfgParser, 'scheduler', 'lease seconds', 600, minimum=1)
        self._scheduleGating = _getBoolConfig(
            cfgParser, 'scheduler', 'schedule gating', False)
        self._timezoneName = _getConfig(
            cfgParser, 'scheduler', 'timezone', DEFAULT_TIMEZONE)
        self._timezone = tz.gettz(self._timezoneName)
        if self._timezone is None:
            raise ConfigError(
                "RC file has invalid \"scheduler.timezone\" setting {}".format(
                    self._timezoneName))

        self._storeDriver = _getEnumConfig(cfgParser, 'store', 'driver', STORE_DRIVER)
        self._storePath = _getConfig(cfgParser, 'store', 'path', None)

        self._deliveryUrl = _getConfig(
            cfgParser, 'delivery', 'url', DEFAULT_DELIVERY_URL)
        self._deliveryTimeout = _getNumberConfig(
            cfgParser, 'delivery', 'timeout seconds', 10.0, cast=float)
        self._deliveryToken = _getConfig(
            cfgParser, 'delivery', 'token', os.getenv('JOBPOLLER_DELIVERY_TOKEN'))

    @property
    def verbose(self):
        return self.options.verbose

    @staticmethod
    def checkDir(dirName):
        if not os.access(dirName, os.W_OK | os.X_OK | os.R_OK):
            os.makedirs(dirName)
        return dirName

    @property
    def dbDir(self):
        return self.checkDir(self._dbDir)

    @property
    def logDir(self):
        return self.checkDir(self._logDir)

    @property
    def intervalSeconds(self):
        return self._intervalSeconds

    @property
    def maxWorkers(self):
        return self._maxWorkers

    @property
    def jobTimeoutSeconds(self):
        return self._jobTimeoutSeconds or None

    @property
    def leaseSeconds(self):
        return self._leaseSeconds

    @property
    def scheduleGating(self):
        return self._scheduleGating

    @property
    def timezone(self):
        return self._timezone

    @property
    def timezoneName(self):
        return self._timezoneName

    @property
    def storeDriver(self):
        return self._storeDriver

    @property
    def storePath(self):
        if self._storePath:
            return os.path.expanduser(self._storePath)
        return os.path.join(self.dbDir, "jobpoller.sqlite")

    @property
    def deliveryUrl(self):
        return self._deliveryUrl

    @property
    def deliveryTimeout(self):
        return self._deliveryTimeout

    @property
    def deliveryToken(self):
        return self._deliveryToken
