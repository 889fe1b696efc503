"""
Logging for Harmony Bot: console plus a rotating file, or JSON lines.

The same handlers go on the "discord" logger so gateway and voice errors
from discord.py end up next to the bot's own messages.
"""
import json
import logging
import time
from logging.handlers import RotatingFileHandler
from typing import Any, Dict

LIBRARY_LOGGERS = ("discord",)


class _JsonFmt(logging.Formatter):
    def format(self, record):
        base = {
            "ts": time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(record.created)),
            "lvl": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            base["exc"] = self.formatException(record.exc_info)
        return json.dumps(base, ensure_ascii=False)


def setup_logging(config: Dict[str, Any]) -> logging.Logger:
    log = logging.getLogger("Harmony")
    if log.handlers:
        return log
    structured = bool(config.get("structured_logging"))
    trace_on = bool(config.get("trace_logging"))
    if structured:
        fmt_console = _JsonFmt()
    else:
        fmt_console = logging.Formatter("%(asctime)s:%(levelname)s:%(name)s: %(message)s")
    log.setLevel(logging.DEBUG if trace_on else logging.INFO)
    handlers = []
    ch = logging.StreamHandler(); ch.setFormatter(fmt_console); handlers.append(ch)
    if not structured:
        fh = RotatingFileHandler(config.get("log_file") or "Harmony.log", maxBytes=5_000_000, backupCount=3, encoding="utf-8")
        fh.setFormatter(fmt_console); handlers.append(fh)
    for handler in handlers:
        log.addHandler(handler)
    # discord.py DEBUG is gateway noise even with trace on
    for name in LIBRARY_LOGGERS:
        lib = logging.getLogger(name)
        lib.setLevel(logging.INFO)
        for handler in handlers:
            lib.addHandler(handler)
    log.info("Logger initialized (structured=%s trace=%s)", structured, trace_on)
    return log
