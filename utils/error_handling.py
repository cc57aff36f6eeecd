class ConfigError(Exception):
    # Errors in the config.json file
    pass

class InputError(Exception):
    # Errors in the input provided to the program.
    pass

class ModelError(Exception):
    # Errors in interacting with the AI models.
    pass

class ParseError(ModelError):
    # Model output did not contain a well-formed JSON array.
    pass

class ResponseFormatError(ModelError):
    # Provider envelope was missing the expected choice/message/text.
    pass

class NotInitializedError(ModelError):
    # No credential has been supplied for the provider.
    pass

class BusyError(Exception):
    # A batch analysis run is already in progress.
    pass

class AnalysisCancelledError(Exception):
    # The active run was cancelled between batches.
    pass

class PersistenceError(Exception):
    # Writing a record to the local analysis cache failed.
    pass


class ProviderHTTPError(ModelError):
    """
    Non-2xx response from a provider endpoint.

    The status code is kept so retry classification does not depend on the
    wording of the message.
    """

    def __init__(self, provider, status, status_text='', body=''):
        self.provider = provider
        self.status = status
        self.status_text = status_text
        self.body = body
        message = f"{provider} API refused: {status}"
        if status_text:
            message += f" {status_text}"
        if body:
            message += f" - {body}"
        super().__init__(message)


class NetworkTransientError(ModelError):
    """Connection reset, timeout, DNS failure or similar transport problem."""

    def __init__(self, provider, detail):
        self.provider = provider
        self.detail = detail
        super().__init__(f"{provider} network error: {detail}")


class CombinedFallbackError(ModelError):
    """
    Both providers failed for one batch.

    primary_error is None when the primary provider was never attempted
    because it had no credential.
    """

    def __init__(self, primary_name, primary_error, secondary_name, secondary_error, label=''):
        self.primary_name = primary_name
        self.primary_error = primary_error
        self.secondary_name = secondary_name
        self.secondary_error = secondary_error
        primary_text = get_error_message(primary_error) if primary_error is not None else 'Skipped/Not Configured'
        prefix = 'Both AI providers failed'
        if label:
            prefix += f' in {label}'
        super().__init__(
            f"{prefix}. {primary_name}: {primary_text}. "
            f"{secondary_name}: {get_error_message(secondary_error)}"
        )

    @property
    def primary_skipped(self):
        return self.primary_error is None


def get_error_message(error):
    """Readable message for any error value, including bare strings."""
    if isinstance(error, str):
        return error
    message = str(error) if error is not None else ''
    if message:
        return message
    if error is not None:
        return type(error).__name__
    return 'Unknown error'
