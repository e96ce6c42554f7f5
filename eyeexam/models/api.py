from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional, Union


class RecordPage(BaseModel):
    items: List[Dict[str, Any]] = Field(default_factory=list)
    page: int = 1
    per_page: int = 10
    last_page: int = 1
    total: int = 0


class VisitContext(BaseModel):
    patient_name: Optional[str] = None
    visit_date: Optional[str] = None
    visit_type: Optional[str] = None


class FieldView(BaseModel):
    key: str
    label: str
    value: str
    rich: bool = False  # value is editor markup, embed without escaping
    empty: bool = False


class TableRow(BaseModel):
    label: str
    cells: List[str]  # field keys, one per column


class TableView(BaseModel):
    columns: List[str]
    rows: List[TableRow]


class SectionView(BaseModel):
    name: str
    style: str
    empty: bool
    collapsed: bool
    fields: List[FieldView]
    table: Optional[TableView] = None

    def field(self, key: str) -> FieldView:
        for f in self.fields:
            if f.key == key:
                return f
        raise KeyError(key)


class ReportView(BaseModel):
    title: str
    visit_id: Optional[str] = None
    context: VisitContext = Field(default_factory=VisitContext)
    sections: List[SectionView]
    missing_kinds: List[str] = Field(default_factory=list)


class SnapshotResponse(BaseModel):
    visit_id: Optional[str] = None
    values: Dict[str, Any]
    missing_kinds: List[str] = Field(default_factory=list)
    sources: Dict[str, Any] = Field(default_factory=dict)


class CartItemIn(BaseModel):
    id: Union[int, str]
    name: str = ""
    price: Optional[Any] = None
    quantity: int = 1


class OrderPreviewRequest(BaseModel):
    items: List[CartItemIn]
    notes: str = ""


class OrderLine(BaseModel):
    item_id: str
    name: str
    price: Optional[Any] = None
    quantity: int


class OrderPreviewResponse(BaseModel):
    items: List[OrderLine]
    total_amount: str
    order_date: str
    notes: str = ""
