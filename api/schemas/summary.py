from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any


class FormatOptionsIn(BaseModel):
    use_ampm: bool = True
    slot_minutes: Optional[int] = Field(default=None, gt=0, le=1440)
    date: Optional[str] = None
    tz: Optional[str] = None


class DedupeOptionsIn(BaseModel):
    mode: Optional[str] = Field(default=None, pattern="^(consecutive|global)$")
    similarity_threshold: Optional[float] = Field(default=None, ge=0, le=1)
    collapse_phrases: Optional[List[str]] = None


class SummaryViewOptions(FormatOptionsIn):
    dedupe: DedupeOptionsIn = DedupeOptionsIn()


class TimeWindowVM(BaseModel):
    index: int
    name: str
    start_display: str
    end_display: str
    start_iso: Optional[str] = None
    end_iso: Optional[str] = None
    category: Optional[str] = None
    type: Optional[str] = None
    score: Optional[float] = None
    score_text: str
    severity: str
    pakshi_day: Optional[str] = None
    pakshi_night: Optional[str] = None
    pakshi_status: Optional[str] = None
    short_desc: Optional[str] = None
    note: Optional[str] = None
    facts_html: Optional[Any] = None
    interpretation_html: Optional[Any] = None
    practical_html: Optional[Any] = None
    ai_summary: Optional[str] = None
    card_date: Optional[str] = None
    key: Optional[str] = None
    ranges: List[str] = []


class SectionVM(BaseModel):
    title: str
    text: Optional[str] = None
    html: Optional[str] = None


class StructuredSummaryVM(BaseModel):
    overall: Optional[str] = None
    health: Optional[str] = None
    money: Optional[str] = None


class SummaryViewRequest(BaseModel):
    ai_summary: Optional[Dict[str, Any]] = None
    day_summary: Optional[str] = None
    engine_windows: Optional[List[Dict[str, Any]]] = None
    options: SummaryViewOptions = SummaryViewOptions()


class SummaryViewResponse(BaseModel):
    source: Optional[str] = None
    text: Optional[str] = None
    html: Optional[str] = None
    structured: Optional[StructuredSummaryVM] = None
    sections: List[SectionVM]
    time_windows: List[TimeWindowVM]


class TimeWindowsRequest(BaseModel):
    data: Dict[str, Any]
    options: FormatOptionsIn = FormatOptionsIn()


class TimeWindowsResponse(BaseModel):
    time_windows: List[TimeWindowVM]


class DedupeRequest(DedupeOptionsIn):
    text: str


class DedupeResponse(BaseModel):
    text: str
