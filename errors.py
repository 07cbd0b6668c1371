# errors.py


class AssistantError(Exception):
    """Base class for errors that reject an analysis request outright."""

    status_code = 400


class MissingContentError(AssistantError):
    """No text / no image buffer was supplied; raised before any oracle call."""

    status_code = 400


class ChildNotFoundError(AssistantError):
    """An explicit child id does not belong to the acting user."""

    status_code = 404

    def __init__(self, child_id, owner_id):
        super().__init__(f"Child {child_id} not found for user {owner_id}")
        self.child_id = child_id
        self.owner_id = owner_id
