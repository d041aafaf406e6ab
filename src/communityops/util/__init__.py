"""
Utility functions and helpers for CommunityOps.

- **logger.py**: Centralized logging configuration with colored console output
  and rotating file handlers. Uses prompt_toolkit for non-blocking console I/O.

- **discord_utils.py**: Stateless Discord helpers for fetching members and
  channels without raising, checking role editability and describing API errors.
"""
