import math

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 50


class PaginatePage:
    def normalize(self, page: int | None, per_page: int | None) -> tuple[int, int]:
        page = max(page or 1, 1)
        per_page = per_page or DEFAULT_PER_PAGE
        per_page = min(max(per_page, 1), MAX_PER_PAGE)
        return page, per_page

    def offset(self, page: int, per_page: int) -> int:
        return (page - 1) * per_page

    def build(self, items: list, total: int, page: int, per_page: int) -> dict:
        return {
            "items": items,
            "pagination": {
                "page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": math.ceil(total / per_page) if total else 0,
            },
        }
