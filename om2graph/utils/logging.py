from enum import Enum
from typing import Union

__all__ = ["Color", "LOG_LEVELS", "debug", "info", "warn", "error", "set_log_level", "get_log_level"]

class Color(Enum):
    RED            = '\033[31m'
    GREEN          = '\033[32m'
    YELLOW         = '\033[33m'
    BLUE           = '\033[34m'
    MAGENTA        = '\033[35m'
    CYAN           = '\033[36m'
    BOLD           = '\033[1m'
    RESET          = '\033[0m'

    def __str__(self):
        return self.value

    def __call__(self, s):
        return str(self) + str(s) + str(Color.RESET)

LOG_LEVELS = {
    'debug': 0,
    'info':  1,
    'warn':  2,
    'error': 3,
    'silent': 4,
}

# Library default: stay quiet below warnings until a caller opts in.
log_level = LOG_LEVELS['warn']

def set_log_level(level: Union[str, int]):
    global log_level
    if isinstance(level, str):
        if level not in LOG_LEVELS:
            raise ValueError(f'Unknown log level: {level}')
        log_level = LOG_LEVELS[level]
    else:
        log_level = int(level)

def get_log_level():
    return log_level

def debug(*args):
    if log_level <= LOG_LEVELS['debug']:
        print(Color.BLUE('DEBUG:'), *args)
def info(*args):
    if log_level <= LOG_LEVELS['info']:
        print(*args)
def warn(*args, prefix=True):
    if log_level <= LOG_LEVELS['warn']:
        if prefix and any(args):
            print(
                Color.YELLOW('WARNING:'),
                *args
            )
        else:
            print(*args)
def error(*args, prefix=True):
    if log_level <= LOG_LEVELS['error']:
        if prefix and any(args):
            print(
                Color.RED('ERROR:'),
                *args
            )
        else:
            print(*args)
