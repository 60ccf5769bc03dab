"""Focus Follows Mouse daemon

Cross-display focus coordinator for i3/Sway.

This package provides a long-running daemon that:
- Watches pointer movement and detects when the pointer crosses to another output
- Focuses the most relevant window on the new output (remembered, under cursor, or first)
- Remembers the last focused window per output
- Exposes hotkeys and i3 tick commands for reload/toggle/debug/clear

Author: NixOS Configuration
License: MIT
Version: 1.0.0
"""

__version__ = "1.0.0"
