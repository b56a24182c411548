"""Entry point for `python -m suspend_notifier`.

Usage:
    python -m suspend_notifier
"""

from __future__ import annotations

import asyncio

from suspend_notifier.app import main

asyncio.run(main())
