from __future__ import annotations


class ProfileAnalyzerError(RuntimeError):
    def __init__(self, message: str, *, code: str = "analysis_error"):
        super().__init__(message)
        self.code = code


class StructuralMiss(ProfileAnalyzerError):
    """A section region could not be located in the document."""

    def __init__(self, section: str):
        super().__init__(f"Section '{section}' was not found in the document.", code="structural_miss")
        self.section = section


class TransientIOError(ProfileAnalyzerError):
    def __init__(self, message: str):
        super().__init__(message, code="transient_io")


class ExternalAnalysisError(ProfileAnalyzerError):
    def __init__(self, message: str, *, code: str = "analysis_invalid"):
        super().__init__(message, code=code)


class CacheCorruptionError(ProfileAnalyzerError):
    def __init__(self, message: str):
        super().__init__(message, code="cache_corruption")


class StorageQuotaError(ProfileAnalyzerError):
    def __init__(self, message: str):
        super().__init__(message, code="storage_quota")


class StorageUnavailableError(ProfileAnalyzerError):
    def __init__(self, message: str):
        super().__init__(message, code="storage_unavailable")


class UnsupportedDocumentError(ProfileAnalyzerError):
    def __init__(self, message: str = "Document is not a supported profile page."):
        super().__init__(message, code="unsupported_document")


class InvalidTransitionError(ProfileAnalyzerError):
    def __init__(self, current: str, target: str):
        super().__init__(f"Invalid state transition {current} -> {target}", code="invalid_transition")
        self.current = current
        self.target = target


class RunSupersededError(ProfileAnalyzerError):
    def __init__(self, run_id: int):
        super().__init__(f"Analysis run {run_id} was superseded.", code="run_superseded")
        self.run_id = run_id


FATAL_ERRORS: tuple[type[ProfileAnalyzerError], ...] = (
    UnsupportedDocumentError,
    StorageUnavailableError,
)
