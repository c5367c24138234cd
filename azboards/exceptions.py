"""
Azure Boards CLI exceptions
"""


class BoardsError(Exception):
    """Base exception for all Azure Boards CLI errors"""

    pass


class BoardsAPIError(BoardsError):
    """Raised when an Azure DevOps REST request fails"""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class NotFoundError(BoardsAPIError):
    """Raised when a resource is not found (404)"""

    def __init__(self, message: str):
        super().__init__(message, status_code=404)


class AuthenticationError(BoardsAPIError):
    """Raised when the personal access token is rejected (401/203)"""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code=status_code)


class ConfigError(BoardsError):
    """Raised when organization, project or token is missing or unreadable"""

    pass


class TemplateError(BoardsError):
    """Raised when a template cannot be found, parsed or written"""

    pass
