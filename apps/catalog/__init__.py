"""
Service catalog app.

Keeps descriptive metadata (environment, team, component type, tags) for
every service seen in alerts or telemetry, merging updates from several
sources by priority.
"""
