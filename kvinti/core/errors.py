"""Exceptions raised by the Kvinti rules engine."""


class KvintiError(Exception):
    """Base class for rules engine errors."""


class IllegalActionError(KvintiError):
    """The requested action is not among the currently legal actions.

    Always a caller error: re-derive legal actions before retrying.
    """


class GameOverError(KvintiError):
    """An action was submitted after the game reached a terminal status."""
