from .summary import (
    FormatOptionsIn,
    DedupeOptionsIn,
    SummaryViewOptions,
    TimeWindowVM,
    SectionVM,
    StructuredSummaryVM,
    SummaryViewRequest,
    SummaryViewResponse,
    TimeWindowsRequest,
    TimeWindowsResponse,
    DedupeRequest,
    DedupeResponse,
)
