from .logger import logger, log_performance, MinirepoLogger
from .utility_functions import snake_case, default_foreign_key, unique, fields_mentioned_in

__all__ = [
    "logger",
    "log_performance",
    "MinirepoLogger",
    "snake_case",
    "default_foreign_key",
    "unique",
    "fields_mentioned_in"
]
