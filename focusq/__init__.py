"""FocusQ - smart suggestions and a scheduled Slack digest of things you might have missed"""

from __future__ import annotations

__version__ = "1.0.0"
