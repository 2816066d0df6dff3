from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Callable


class TimestampKeyProvider:
    """Builds object keys shaped ``<prefix>[/<subdir>]/<millis>-<random><ext>``."""

    def __init__(
        self,
        prefix: str,
        *,
        clock: Callable[[], float] = time.time,
        random_below: Callable[[int], int] = secrets.randbelow,
    ) -> None:
        self._prefix = prefix.strip("/")
        self._clock = clock
        self._random_below = random_below

    def generate(self, filename: str, *, subdir: str | None = None) -> str:
        millis = int(self._clock() * 1000)
        token = self._random_below(10**9)
        extension = Path(Path(filename or "").name).suffix.lower()
        segments = [self._prefix, (subdir or "").strip("/"), f"{millis}-{token}{extension}"]
        return "/".join(segment for segment in segments if segment)
