"""Domain exceptions shared by the extraction pipeline, the store and the API."""


class ExpenseBotError(Exception):
    pass


class ValidationError(ExpenseBotError):
    """Input rejected: empty text, bad amount, or a category outside the vocabulary."""


class ProviderError(ExpenseBotError):
    """The language model call failed, timed out, or returned no text."""


class ParseError(ExpenseBotError):
    """The model reply is not JSON or lacks the ``expenses`` array."""


class NotFoundError(ExpenseBotError):
    pass
