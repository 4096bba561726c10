from .logger import JSONFormatter, PrettyFormatter, setup_logging
from .decorators import log_timing

__all__ = ["JSONFormatter", "PrettyFormatter", "setup_logging", "log_timing"]
