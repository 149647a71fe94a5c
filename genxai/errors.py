from __future__ import annotations


class GenXAIError(Exception):
    pass


class UnsupportedPlatformError(GenXAIError):
    pass


class ModuleLoadError(GenXAIError):
    pass


class NotInstalledError(GenXAIError):
    pass


class ServiceError(GenXAIError):
    def __init__(self, service: str, message: str, status_code: int | None = None):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.status_code = status_code


class SettingsError(GenXAIError, ValueError):
    pass


class PreferenceError(GenXAIError, ValueError):
    pass


class ImageValidationError(GenXAIError, ValueError):
    pass


class ToolDefinitionError(GenXAIError, ValueError):
    pass
