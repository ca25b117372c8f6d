"""
Error taxonomy for the upload / generation pipeline
"""


class PdfLearnError(Exception):
    """Base class; ``user_message`` is what the upload handler shows."""

    user_message = "An error occurred while processing the PDF"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.user_message)
        if message:
            self.user_message = message


class ExtractionError(PdfLearnError):
    user_message = "Failed to extract text from PDF"


class NoExtractableTextError(ExtractionError):
    user_message = (
        "This PDF appears to be unreadable or contains no extractable text. "
        "This can happen with scanned documents or images, password-protected PDFs, "
        "corrupted files, or PDFs with only images/graphics. "
        "Please try uploading a different PDF with readable text content."
    )


class ConfigurationError(PdfLearnError):
    user_message = "Completion API key is not configured"


class CompletionError(PdfLearnError):
    user_message = "Completion request failed"


class MalformedResponseError(PdfLearnError):
    user_message = "Completion response could not be parsed"


class EmptyContentError(PdfLearnError):
    user_message = "No usable flashcards or quiz questions were generated"


class PersistenceError(PdfLearnError):
    user_message = "Failed to save the document and its learning materials. Please try again."


class UploadInProgressError(PdfLearnError):
    user_message = "Another PDF is still being processed. Please wait for it to finish."
