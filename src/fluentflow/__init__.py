"""FluentFlow: spaced-repetition sentence and vocabulary drills."""

from fluentflow.consts import VERSION

__version__ = VERSION
