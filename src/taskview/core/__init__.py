from .data_source import VirtualDataSource
from .filter_engine import FilterEngine
from .filters import (
    DueDateRangeFilter,
    Filter,
    FilterGroup,
    HasDueFilter,
    HasProjectFilter,
    LogicOperator,
    PriorityFilter,
    ProjectFilter,
    StatusFilter,
    TagFilter,
    TextFilter,
    UrgencyRangeFilter,
)
from .query_parser import ParsedQuery, QueryParser, RejectedToken
from .sorters import DueDateSorter, ProjectSorter, Sorter, UrgencySorter, create_sorter
from .viewport import ViewportState, VirtualScrollingViewport

__all__ = [
    "DueDateRangeFilter",
    "DueDateSorter",
    "Filter",
    "FilterEngine",
    "FilterGroup",
    "HasDueFilter",
    "HasProjectFilter",
    "LogicOperator",
    "ParsedQuery",
    "PriorityFilter",
    "ProjectFilter",
    "ProjectSorter",
    "QueryParser",
    "RejectedToken",
    "Sorter",
    "StatusFilter",
    "TagFilter",
    "TextFilter",
    "UrgencyRangeFilter",
    "UrgencySorter",
    "ViewportState",
    "VirtualDataSource",
    "VirtualScrollingViewport",
    "create_sorter",
]
