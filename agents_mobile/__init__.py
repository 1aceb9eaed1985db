"""Agents-Mobile: turn Android phones and desktops into Bun-powered agent workstations.

Core design goals:
- One CLI for detect, install, start, stop, watchdog, bench and checks
- Resumable, state-driven installers
- Best-effort runtime tools that never leave mounts or processes behind
- Centralized logging
"""

__version__ = "1.0.0"

__all__ = []
