class ValidationError(Exception):
    """Invalid input to a cage lifecycle operation. Nothing was changed."""

    def __init__(self, field, message):
        super().__init__(message)
        self.field = field
        self.message = message

    def as_dict(self):
        return {'field': self.field, 'detail': self.message}


class StoreWriteError(Exception):
    """A create/update/delete against one of the record stores failed."""

    def __init__(self, operation, key, cause=None):
        super().__init__(f'{operation} failed for {key}: {cause}')
        self.operation = operation
        self.key = key
        self.cause = cause
