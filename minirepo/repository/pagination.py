from dataclasses import dataclass, field
from math import ceil
from typing import Any, Dict, Iterator

from ..database_manager.query_builder import Record, RecordBatch


@dataclass
class Paginator:
    """One page of records plus the numbers needed to render page links"""
    items: RecordBatch = field(default_factory=list)
    total: int = 0
    per_page: int = 15
    current_page: int = 1
    page_name: str = "page"

    @property
    def last_page(self) -> int:
        return max(1, ceil(self.total / self.per_page))

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    @property
    def first_item(self):
        """1-based position of the first item on this page, None for an empty page"""
        if not self.items:
            return None
        return (self.current_page - 1) * self.per_page + 1

    @property
    def last_item(self):
        if not self.items:
            return None
        return self.first_item + len(self.items) - 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.items,
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
            "from": self.first_item,
            "to": self.last_item,
            "page_name": self.page_name,
        }

    def __iter__(self) -> Iterator[Record]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)
