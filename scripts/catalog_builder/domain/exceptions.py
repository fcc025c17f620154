from __future__ import annotations


class CatalogBuildError(Exception):
    """Base class for every error raised by the catalog build."""
    pass


class RegistryLoadError(CatalogBuildError):
    """The source registry is unreadable. The only fatal condition of a run."""
    pass


class FetchError(CatalogBuildError):
    """No README found for a source after all fallback attempts."""

    def __init__(self, repo: str, attempts: int) -> None:
        self.repo = repo
        self.attempts = attempts
        super().__init__(f"README not found for {repo} after {attempts} attempts")


class ProviderError(CatalogBuildError):
    """Metadata provider failure that retrying the same request will not fix."""
    pass


class TransientProviderError(ProviderError):
    """Network error or 5xx from the provider. Safe to retry."""
    pass


class RateLimitError(TransientProviderError):
    """Raised when GitHub explicitly signals a primary or secondary rate limit."""

    def __init__(self, message: str = "rate limited", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        super().__init__(message)


class RetryExhaustedError(CatalogBuildError):
    """Raised by the retry wrapper once its attempt ceiling is reached."""

    def __init__(self, description: str, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Exhausted {attempts} attempts for {description}")
