class EstimatorError(Exception):
    """Base class for errors raised while analyzing a blueprint."""


class ApiKeyMissingError(EstimatorError):
    pass


class AnalysisError(EstimatorError):
    """The model call succeeded but its reply could not be used."""


class PdfConversionError(EstimatorError):
    pass


class UnsupportedFileError(EstimatorError):
    pass
