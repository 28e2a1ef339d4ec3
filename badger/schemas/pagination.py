from pydantic import BaseModel

class PaginationOut(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


def pagination_of(page) -> dict:
    return {"total": page.total, "limit": page.limit, "offset": page.offset, "has_more": page.has_more}
