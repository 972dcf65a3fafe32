#!/usr/bin/env python
import argparse
import logging
import logging.handlers
import os
import sys

from reochat import ReoChatError
from reochat.app import ReoChatApp
from reochat.config import ReoChatConfig, default_data_dir
from reochat.dispatch import check_room_id

log = logging.getLogger(name=__name__)


def configure_logging(logfile):
    log_format = "%(asctime)s %(levelname)s: %(message)s"
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=log_format
    )

    if logfile:
        formatter = logging.Formatter(log_format)

        # rotate logs (20MB, max 6 = 120MB)
        handler = logging.handlers.RotatingFileHandler(
              logfile, maxBytes=(1000*1000*20), backupCount=5)
        handler.setFormatter(formatter)
        logging.getLogger('').addHandler(handler)


def main(config):
    app = ReoChatApp(config)
    log.info("Data directory: %s", config.data_dir)
    ok = app.run()
    log.info("Terminating.")
    return 0 if ok else 1


if __name__ == '__main__':
    a = argparse.ArgumentParser("Runs ReoChat, a single-room Matrix client.")
    a.add_argument("username", help="Full user ID, e.g. @user:example.org")
    a.add_argument("password", help="Password for the account.")
    a.add_argument("room_id", help="Room to chat in, e.g. !abc:example.org")
    a.add_argument(
        "-d", "--data-dir", dest="data_dir", default=None,
        help="Where to keep the session and encrypted store. Default: %s" %
        default_data_dir()
    )
    a.add_argument(
        "-l", "--log-file", dest="log",
        help="Log to this file."
    )
    args = a.parse_args()

    configure_logging(args.log)
    log.info("  ===== ReoChat initialising ===== ")

    try:
        config = ReoChatConfig.from_args(args)
        check_room_id(config.room_id)
    except ReoChatError as e:
        a.error(e.as_str())

    sys.exit(main(config))
