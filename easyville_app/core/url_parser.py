import logging
from typing import List

logger = logging.getLogger(__name__)

DEFAULT_ORIGINS = ["http://localhost:3000"]


class URLParser:
    def parse_url_list(self, raw_value: str, name: str) -> List[str]:
        items = [v.strip().rstrip("/") for v in raw_value.split(",") if v.strip()]

        valid_items = [
            v for v in items if v.startswith("http://") or v.startswith("https://")
        ]

        if not valid_items:
            logger.warning("No valid URLs found in %s, falling back to localhost", name)
            return list(DEFAULT_ORIGINS)

        return valid_items


parser = URLParser()
