"""
CommunityOps - Cross-Guild Moderation Bot

CommunityOps keeps moderation consistent across every Discord guild of one
community. A single command bans, unbans, kicks or renames a user in all guilds
the bot is in, and an Internal Affairs case suspends a member's roles
everywhere until the case is closed.

Core Components:

- **Permission Resolver**: Maps a member's roles to one of eight staff levels using
  per-guild role overrides, default role ids and literal role names
- **Cross-Guild Coordinator**: Applies one action in every guild concurrently and
  reports one outcome per guild
- **IA Case Manager**: Opens a case (role snapshot, role removal, private channel)
  and closes it (role restoration, channel teardown) on top of a durable case store
- **Allocation Review**: Approve/deny buttons on allocation requests that grant the
  recruit role, plus the recruit onboarding commands

Usage:
    from communityops.main import main
    main()  # Starts the bot
"""
