"""
This module implements the handler plugin contract.

Plugin modules need to be registered using the jobpoller.handlers entrypoint.
Modules that are registered as such can implement any of the functions:

    def priority():
        return {"handlers": 10}

    def handlers():
        # Map a job parameters type to a callable taking (job, parameters).
        return {"send-digest": sendDigest}

All of these functions are optional. If the plugin cannot provide handlers
in the current environment then it should raise NotImplementedError so that
the next plugin at a possibly lower priority will get called instead. When
two plugins register the same type, the one with the higher priority (lower
number) wins.
"""
import logging
from operator import attrgetter
from typing import Callable, Dict

from .compat import get_plugins

logger = logging.getLogger(__name__)
PRIO_LOWEST = 1 << 31
PRIO_HIGHEST = 0
ENTRY_POINT_GROUP = "jobpoller.handlers"


class Plugins(object):
    def __init__(self, plugins=None):
        if plugins is None:
            plugins = {plug.load() for plug in get_plugins(ENTRY_POINT_GROUP)}
        self.plugins = list(sorted(plugins, key=attrgetter("__name__")))
        logger.debug("all plugins: %r", [p.__name__ for p in self.plugins])
        self._prio = {}
        for plugin in self.plugins:
            if hasattr(plugin, "priority"):
                self._prio[plugin.__name__] = plugin.priority()

    def _pluginCalls(self, func, *args, **kwargs):
        prio = {}
        for plugin in self.plugins:
            if hasattr(plugin, func):
                pluginPrioMap = self._prio.get(plugin.__name__, {})
                pval = pluginPrioMap.get(func, pluginPrioMap.get("", PRIO_LOWEST))
                prio.setdefault(pval, []).append(plugin)

        if not prio:
            return

        for prio, plugins in sorted(prio.items()):
            for plugin in plugins:
                name = plugin.__name__
                try:
                    result = getattr(plugin, func)(*args, **kwargs)
                    logger.debug("%r: yield plugin %s => %r", prio, name, result)
                    yield result
                except NotImplementedError:
                    logger.debug("%r: plugin %s NotImplementedError", prio, name)
                    continue

    def handlers(self) -> Dict[str, Callable]:
        merged: Dict[str, Callable] = {}
        for result in self._pluginCalls("handlers"):
            for jobType, handler in (result or {}).items():
                merged.setdefault(jobType, handler)
        return merged
