class CardFeedError(Exception):
    """Base class for errors the action layer raises on purpose."""


class UserConflictError(CardFeedError):
    """An account with the same email (or id) already exists."""


class BlockedUserError(CardFeedError):
    pass


class LastAdminError(CardFeedError):
    pass
