"""Settings persistence and application services."""

from .settings import BACKEND_CHOICES, SecretVault, Settings, SettingsStore, redact_secret

__all__ = ["Settings", "SettingsStore", "SecretVault", "BACKEND_CHOICES", "redact_secret"]
