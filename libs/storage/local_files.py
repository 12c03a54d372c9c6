from __future__ import annotations

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class LocalScreenshotStore:
    """Screenshots kept on the server's disk (captures made without Drive).

    Stored paths look like ``screenshots/<file>.png`` or ``<file>.png`` and are
    resolved against ``base_dir``.
    """

    def __init__(self, base_dir: Path) -> None:
        self.base_dir = Path(base_dir)

    # ------------------------------------------------------------------
    def resolve(self, path: str) -> Path | None:
        """Absolute location of ``path`` or ``None`` if it escapes ``base_dir``."""

        relative = Path(path.lstrip("/\\"))
        if relative.parts and relative.parts[0] == self.base_dir.name:
            relative = Path(*relative.parts[1:])
        base = self.base_dir.resolve()
        target = (base / relative).resolve()
        if target == base or base not in target.parents:
            return None
        return target

    def delete(self, path: str) -> bool:
        """Best-effort removal; returns whether a file was removed."""

        target = self.resolve(path)
        if target is None:
            logger.warning("local_screenshot_path_rejected", extra={"path": path})
            return False
        try:
            target.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning(
                "local_screenshot_delete_failed", extra={"path": path, "reason": str(exc)}
            )
            return False
        return True


__all__ = ["LocalScreenshotStore"]
