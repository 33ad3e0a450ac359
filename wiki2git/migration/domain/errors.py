class Wiki2GitError(Exception):
    """Base class for every fatal or page-scoped migration failure."""


class WikiFetchError(Wiki2GitError):
    pass


class ConversionError(Wiki2GitError):
    pass


class AuthorMapError(Wiki2GitError):
    pass


class RepositoryOpenError(Wiki2GitError):
    pass


class IntegrationError(Wiki2GitError):
    def __init__(self, branch_name: str, reason: str, title: str | None = None) -> None:
        self.branch_name = branch_name
        self.reason = reason
        self.title = title
        subject = f"page '{title}'" if title else f"branch '{branch_name}'"
        super().__init__(f"Failed to integrate {subject}: {reason}")
