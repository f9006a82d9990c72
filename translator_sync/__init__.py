"""Keep localization resource files in sync with a primary-language file."""
