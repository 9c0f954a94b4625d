class LostLinkError(Exception):
    """Base class for domain errors."""


class NotFoundError(LostLinkError):
    pass


class ForbiddenError(LostLinkError):
    pass


class ConflictError(LostLinkError):
    pass


class PersistenceError(LostLinkError):
    """The store rejected a read or write."""


class MatchNotFoundError(NotFoundError):
    def __init__(self, match_id):
        super().__init__(f"Match {match_id} not found")
        self.match_id = match_id


class MatchForbiddenError(ForbiddenError):
    def __init__(self, match_id, user_id):
        super().__init__(f"User {user_id} is not a party to match {match_id}")
        self.match_id = match_id
        self.user_id = user_id


class MatchAlreadyConfirmedError(ConflictError):
    def __init__(self, match_id, user_id):
        super().__init__(f"User {user_id} already confirmed match {match_id}")
        self.match_id = match_id
        self.user_id = user_id
