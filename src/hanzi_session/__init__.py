"""hanzi-session: study-session orchestration for a spaced-repetition vocabulary trainer."""

from .consts import VERSION

__version__ = VERSION
