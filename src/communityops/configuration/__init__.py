"""
Configuration management for CommunityOps.

- **app_configuration.py**: File-locked YAML loader for ``config/app_config.yml``.
- **bot_settings.py**: Frozen settings assembled once at startup from the
  environment (``.env``) with the YAML file as fallback.
"""
