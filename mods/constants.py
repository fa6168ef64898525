"""Shared constants for the mod provider module."""

# Unified pagination defaults (pages are 1-indexed at the unified boundary)
DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 50

# Settings-store key suffix for provider credentials ("<providerId>.apiKey")
API_KEY_SETTING_SUFFIX = "apiKey"

# Length of the short description synthesized from a long one
SHORT_DESCRIPTION_LENGTH = 200


def api_key_setting(provider_id: str) -> str:
    return f"{provider_id}.{API_KEY_SETTING_SUFFIX}"
