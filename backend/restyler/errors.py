class RestylerError(Exception):
    """Base class for errors raised by the restyler backend."""


class ConfigurationError(RestylerError):
    """A required setting (such as the model credential) is missing."""


class ValidationError(RestylerError):
    """The caller omitted or malformed a required input."""


class UpstreamGenerationError(RestylerError):
    """The generative backend failed or returned an unusable response."""


class ImageGenerationError(RestylerError):
    """A single image request failed. Reported back to the model, never fatal."""


class GenerationFailed(ImageGenerationError):
    pass


class UploadFailed(ImageGenerationError):
    pass


class ScrapeError(RestylerError):
    pass


class NotAGoogleForm(ScrapeError):
    pass


class FetchError(ScrapeError):
    pass


class ParseError(ScrapeError):
    pass


class UnsafeURLError(RestylerError):
    pass


class ScreenshotTimeout(RestylerError):
    pass


class SubmissionRejected(RestylerError):
    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code
