from __future__ import annotations

import logging
from dataclasses import dataclass

from catalog_builder.domain.entities import SourceDescriptor
from catalog_builder.domain.exceptions import CatalogBuildError

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunSelection:
    """Optional subset of the registry to process. Any restriction turns on merge mode."""
    name_filter: str | None = None
    start:       int = 0
    count:       int | None = None

    @property
    def is_partial(self) -> bool:
        return bool(self.name_filter) or self.start > 0 or self.count is not None


def select_sources(sources: list[SourceDescriptor], selection: RunSelection) -> list[SourceDescriptor]:
    """Substring filter first, then the start/count range."""
    selected = sources
    if selection.name_filter:
        selected = [s for s in selected if selection.name_filter in s.repo]
        if not selected:
            raise CatalogBuildError(f'No lists found matching "{selection.name_filter}"')
        log.info('Filtering to %d list(s) matching "%s"', len(selected), selection.name_filter)

    if selection.start > 0 or selection.count is not None:
        total = len(selected)
        end = None if selection.count is None else selection.start + selection.count
        selected = selected[selection.start:end]
        log.info("Range filter: %d of %d lists starting at %d", len(selected), total, selection.start)

    return selected
