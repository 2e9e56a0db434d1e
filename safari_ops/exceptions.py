class NotFoundError(Exception):
    """A referenced record does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity.capitalize()} '{entity_id}' not found")


class AssignmentConflict(Exception):
    """A resource was claimed by someone else between read and write."""


class InvalidTransition(ValueError):
    """A status change would break a trip or vehicle invariant."""


class NoCheckInFound(Exception):
    """Check-out attempted for a user/date with no recorded check-in."""

    def __init__(self, user_id: str, day):
        self.user_id = user_id
        self.day = day
        super().__init__("No check-in found")


class DuplicateEmail(Exception):
    """Another account already uses this email."""

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Email '{email}' already exists")
