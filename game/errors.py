"""Error kinds raised by the game core and the store."""


class GameError(Exception):
    """Base class for every failure the core reports to a caller."""


class NotFoundError(GameError):
    """Game code or player lookup found nothing."""


class PreconditionError(GameError):
    """Operation not allowed in the current state (too few players, wrong phase, ...)."""


class NotHostError(GameError):
    """A host-only operation was invoked by someone other than the host."""


class StaleStateError(GameError):
    """The game moved on between snapshot and commit; nothing was written."""


class StoreError(GameError):
    """The backing store failed or is unavailable."""


class CodeCollisionError(StoreError):
    """A generated game code is already taken."""
