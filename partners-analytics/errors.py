# errors.py

class NotFoundError(Exception):
    """Raised when the caller's user, project or API key does not exist"""
    pass

class ValidationError(Exception):
    """Raised when a request body fails validation; the message is returned to the client"""
    pass
