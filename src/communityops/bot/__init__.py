"""
Discord front end for CommunityOps.

- **command_registry.py**: Static table of every slash command, its required
  permission level and whether it runs outside the main guild
- **command_gate.py**: Guild restriction and permission checks shared by all commands
- **bot_services.py**: Services built once at startup and handed to each cog
- **cogs/**: Slash commands, the allocation button listener and lifecycle events
"""
