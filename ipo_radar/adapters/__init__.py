from ipo_radar.adapters.base import (
    ExtractResult,
    SourceConfig,
    SourceRegistry,
    TableExtractor,
)
from ipo_radar.adapters.ipowatch import (
    ColumnLayout,
    ListedTableExtractor,
    UpcomingTableExtractor,
    default_sources,
)

__all__ = [
    "ColumnLayout",
    "ExtractResult",
    "ListedTableExtractor",
    "SourceConfig",
    "SourceRegistry",
    "TableExtractor",
    "UpcomingTableExtractor",
    "default_sources",
]
