#!/usr/bin/env python
import argparse
from datetime import timedelta
import os
import sys

import jobpoller.logging

from .argparse import addArgumentParserBaseFlags
from .config import RC_FILE_HELP, STORE_DRIVER, Config, ConfigError
from .delivery import HttpDeliveryGateway
from .domain import JobInsert, JobKind, PushMessageParameters, User
from .errors import NotFoundError
from .plugins import Plugins
from .repository import (
    MemoryConversationLog,
    MemoryJobLeases,
    MemoryJobStore,
    MemoryUserStore,
    SqliteConversationLog,
    SqliteDatabase,
    SqliteJobLeases,
    SqliteJobStore,
    SqliteUserStore,
)
from .scheduler import Scheduler
from .service_layer import JobExecutor, JobRunner, MessagingService

_DEBUG_LOG_FILE_NAME = "jobpoller-debug.log"
LOG = jobpoller.logging.getLogger(__name__)

DESC = """
jobpoller - poll for pending jobs, run them, and record the outcome

Recurring jobs always leave a fresh pending copy behind when they run.
One-time jobs are completed on success and retried on every poll otherwise.


Configuration:
    The default configuration file location is `~/.config/jobpollerrc`, but
    can be overwritten using the --rc-file option.

{rcfile}
""".format(rcfile=RC_FILE_HELP)


class App(object):
    """Everything a command needs, wired from the configuration."""

    # pylint: disable=too-many-instance-attributes
    def __init__(self, config: Config, gateway=None, plugins=None):
        self.config = config
        self._db = None
        if config.storeDriver == STORE_DRIVER.MEMORY:
            self.jobs = MemoryJobStore()
            self.users = MemoryUserStore()
            self.conversationLog = MemoryConversationLog()
            self.leases = MemoryJobLeases()
        else:
            self._db = SqliteDatabase(config.storePath)
            self.jobs = SqliteJobStore(self._db)
            self.users = SqliteUserStore(self._db)
            self.conversationLog = SqliteConversationLog(self._db)
            self.leases = SqliteJobLeases(self._db)

        self.gateway = gateway or HttpDeliveryGateway(
            config.deliveryUrl,
            timeout=config.deliveryTimeout,
            token=config.deliveryToken)
        self.messaging = MessagingService(self.users, self.gateway, self.conversationLog)
        plugins = plugins if plugins is not None else Plugins()
        self.executor = JobExecutor(self.messaging, extra_handlers=plugins.handlers())
        self.runner = JobRunner(
            self.executor, self.jobs, timeout=config.jobTimeoutSeconds)
        self.scheduler = Scheduler(
            self.jobs,
            self.runner,
            interval=config.intervalSeconds,
            max_workers=config.maxWorkers,
            leases=self.leases,
            lease_ttl=timedelta(seconds=config.leaseSeconds),
            schedule_gating=config.scheduleGating,
            zone=config.timezone)

    def close(self):
        if self._db is not None:
            self._db.close()


def parseArgs(args=None):
    if args is None:
        prog = sys.argv[0]
        args = sys.argv[1:]
    else:
        prog = None

    # pylint: disable=invalid-name
    ap = argparse.ArgumentParser(
        prog=os.path.basename(prog) if prog else None,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        description=DESC)
    addArgumentParserBaseFlags(ap, _DEBUG_LOG_FILE_NAME)

    sub = ap.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    runP = sub.add_parser("run", help="Poll for jobs until interrupted")
    runP.add_argument("--max-ticks", type=int, default=None,
                      help="Stop after this many poll cycles")

    sub.add_parser("tick", help="Run a single poll cycle now")

    addP = sub.add_parser("add-job", help="Queue a push-message job")
    addP.add_argument("--kind", choices=[k.value for k in JobKind],
                      default=JobKind.ONE_TIME.value)
    addP.add_argument("--user", required=True, help="User id to push to")
    addP.add_argument("--message", required=True, help="Text to deliver")
    addP.add_argument("--schedule",
                      help="Cron expression (recurring) or 'YYYY-MM-DD HH:MM' (one-time)")

    userP = sub.add_parser("add-user", help="Create or replace a user")
    userP.add_argument("userId", metavar="USER")
    userP.add_argument("--handle", help="Recipient address at the delivery provider")
    userP.add_argument("--name", help="Display name")

    listP = sub.add_parser("list", help="List jobs")
    listP.add_argument("--pending", action="store_true", help="Only pending jobs")

    msgP = sub.add_parser("messages", help="Show a user's conversation log")
    msgP.add_argument("userId", metavar="USER")

    return ap.parse_args(args)


def _cmdRun(app, options):
    try:
        app.scheduler.run_forever(max_ticks=options.max_ticks)
    except KeyboardInterrupt:
        LOG.info("interrupted", exc_info=True)
        app.scheduler.stop()
    return 0


def _cmdTick(app, _options):
    report = app.scheduler.tick()
    print(report)
    if report is None or report.error is not None:
        return 1
    return 0


def _cmdAddJob(app, options):
    push = PushMessageParameters(user_id=options.user, message=options.message)
    job = app.jobs.create(JobInsert(
        kind=JobKind(options.kind),
        parameters=push.to_parameters(),
        user_id=options.user,
        schedule=options.schedule,
    ))
    print(job.id)
    return 0


def _cmdAddUser(app, options):
    app.users.save(User(
        id=options.userId,
        messaging_handle=options.handle,
        display_name=options.name))
    return 0


def _cmdList(app, options):
    jobs = app.jobs.list_pending() if options.pending else app.jobs.list_all()
    for job in jobs:
        print("{}  {}".format(job.created_at.isoformat(), job))
    return 0


def _cmdMessages(app, options):
    try:
        app.users.get(options.userId)
    except NotFoundError as error:
        print("Error:", error, file=sys.stderr)
        return 1
    for message in app.conversationLog.list_for_user(options.userId):
        print("{} {:9s} {}".format(
            message.created_at.isoformat(), message.role.value, message.text()))
    return 0


COMMANDS = {
    "run": _cmdRun,
    "tick": _cmdTick,
    "add-job": _cmdAddJob,
    "add-user": _cmdAddUser,
    "list": _cmdList,
    "messages": _cmdMessages,
}


def impl_main(args=None):
    options = parseArgs(args)
    config = Config(options)
    jobpoller.logging.setup(
        config.logDir,
        _DEBUG_LOG_FILE_NAME,
        debug=options.debug,
        verbose=options.verbose)
    LOG.debug("starting with args %s", options)
    LOG.debug("python: %s", sys.version)

    app = App(config)
    try:
        return COMMANDS[options.command](app, options)
    finally:
        app.close()


def main(args=None):
    try:
        return impl_main(args=args)
    except ConfigError as error:
        print("Error:", error, file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
