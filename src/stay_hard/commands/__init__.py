"""CLI commands for stay-hard."""

from .calls import calls
from .checkin import checkin
from .init import init, logout
from .run import run
from .serve import serve
from .setup import setup
from .status import status
from .wallet import wallet

__all__ = [
    "calls",
    "checkin",
    "init",
    "logout",
    "run",
    "serve",
    "setup",
    "status",
    "wallet",
]
