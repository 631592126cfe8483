from __future__ import annotations

from typing import Final

# Discord limits
MAX_MESSAGE_LENGTH: Final[int] = 2000
MAX_POLL_QUESTION: Final[int] = 300
MAX_POLL_ANSWER: Final[int] = 55
MAX_BUTTON_LABEL: Final[int] = 80

# Listings are sent one card per message; keep bursts short.
LISTING_SEND_DELAY_SECONDS: Final[float] = 0.3
