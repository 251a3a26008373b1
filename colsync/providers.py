"""Command palette providers for sync actions."""

from __future__ import annotations

from textual.command import DiscoveryHit, Hit, Hits, Provider
from textual.types import IgnoreReturnCallbackType

_COMMANDS: tuple[tuple[str, str, str], ...] = (
    ("Sync next connection now", "sync_now", "Run one round-robin sync pass immediately."),
    ("Test all connections", "test_connections", "Check every configured connection in parallel."),
)


class SyncCommandProvider(Provider):
    """Expose manual sync and connection tests to the command palette."""

    async def search(self, query: str) -> Hits:
        matcher = self.matcher(query)
        for label, action, help_text in _COMMANDS:
            score = matcher.match(label)
            if score > 0:
                yield Hit(
                    score=score,
                    match_display=matcher.highlight(label),
                    command=self._build_callback(action),
                    help=help_text,
                )

    async def discover(self) -> Hits:
        for label, action, help_text in _COMMANDS:
            yield DiscoveryHit(
                display=label,
                command=self._build_callback(action),
                help=help_text,
            )

    def _build_callback(self, action: str) -> IgnoreReturnCallbackType:
        async def _run() -> None:
            await self.app.run_action(action)

        return _run


__all__ = ["SyncCommandProvider"]
