class StackMorphError(Exception):
    status_code = 500
    message = "Failed to convert project due to a server error."

    def __init__(self, message: str = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class ConfigurationError(StackMorphError):
    status_code = 500
    message = "Server is not configured with a model API key."


class InputValidationError(StackMorphError):
    status_code = 400
    message = "Invalid conversion request."


class ArchiveCorruptError(StackMorphError):
    status_code = 500
    message = "The uploaded archive could not be read."


class ModelInvocationError(StackMorphError):
    status_code = 502
    message = "The language model request failed."


class ConversionFailedError(StackMorphError):
    status_code = 502
    message = "Conversion failed: the language model request did not complete."


class UnparsableResponseError(StackMorphError):
    status_code = 500
    message = "Conversion failed: The AI returned an unparsable response."


class UncaughtProcessingError(StackMorphError):
    status_code = 500
    message = "Failed to convert project due to a server error."
