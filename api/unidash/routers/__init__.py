# This file makes the routers directory a Python package
from . import (
    admin,
    auth,
    health,
    history,
    modules,
)
