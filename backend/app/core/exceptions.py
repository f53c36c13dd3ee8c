class AppError(Exception):
    """Base class for errors raised by the chat pipeline."""

    code = "INTERNAL_ERROR"


class BadRequestError(AppError):
    code = "BAD_REQUEST"


class CatalogRetrievalError(AppError):
    code = "CATALOG_ERROR"


class LLMServiceError(AppError):
    code = "AI_ERROR"
