"""Domain exceptions raised by the service layer and translated by routers."""


class EntityNotFoundError(Exception):
    """Raised when a requested entity does not exist."""

    def __init__(self, entity_type: str, entity_id: int | str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id '{entity_id}' not found")


class PermissionDeniedError(Exception):
    """Raised when the caller may not perform an action on an entity."""

    def __init__(self, action: str, entity_type: str, entity_id: int | str):
        self.action = action
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"Not allowed to {action} {entity_type} '{entity_id}'")


class InvalidFormError(Exception):
    """Raised when submitted form data fails a check that needs the database."""

    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")
