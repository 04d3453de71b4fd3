"""Total order over configured sources, looked up by source id."""

from __future__ import annotations

from ..config import MERGE_POLICY, SOURCES, MergePolicy, SourceConfig


class SourceRegistry:
    """Ranks sources for same-issue tie-breaks.

    Parameters
    ----------
    sources : list[SourceConfig], optional
        Sources to rank. Defaults to SOURCES from config.
    policy : ``'priority'`` | ``'cadence'``
        ``'priority'`` ranks by ``SourceConfig.priority``. ``'cadence'``
        ranks the source with the shorter maximum publication interval
        higher and falls back to priority.

    Raises
    ------
    ValueError
        If two sources end up with the same rank or share a name.
    """

    def __init__(
        self,
        sources: list[SourceConfig] | None = None,
        policy: MergePolicy = MERGE_POLICY,
    ) -> None:
        if sources is None:
            sources = SOURCES
        if policy not in ('priority', 'cadence'):
            raise ValueError(f'Unknown merge policy: {policy!r}')

        self.policy = policy
        self._sources: dict[str, SourceConfig] = {}
        for src in sources:
            if src.name in self._sources:
                raise ValueError(f'Duplicate source name: {src.name!r}')
            self._sources[src.name] = src

        order_keys = {name: self._order_key(src) for name, src in self._sources.items()}
        if len(set(order_keys.values())) != len(order_keys):
            raise ValueError(
                f'Sources do not form a total order under policy {policy!r}: '
                f'{order_keys}'
            )
        ordered = sorted(self._sources, key=order_keys.__getitem__)
        self._ranks: dict[str, int] = {name: i for i, name in enumerate(ordered)}

    def _order_key(self, src: SourceConfig) -> tuple[int, ...]:
        if self.policy == 'cadence':
            return (-src.cadence_days[1], src.priority)
        return (src.priority,)

    def __contains__(self, source_id: str) -> bool:
        return source_id in self._sources

    def __iter__(self):
        return iter(self._sources.values())

    def get(self, source_id: str) -> SourceConfig:
        try:
            return self._sources[source_id]
        except KeyError:
            raise KeyError(f'Unknown source: {source_id!r}') from None

    def rank(self, source_id: str) -> int:
        """Rank of a source; the higher rank wins a same-issue tie."""
        try:
            return self._ranks[source_id]
        except KeyError:
            raise KeyError(f'Unknown source: {source_id!r}') from None

    @property
    def ranks(self) -> dict[str, int]:
        return dict(self._ranks)
