"""
Request handling for equipment detection.

Framework-neutral: handlers take an already parsed JSON body and return
(status, payload) tuples that any HTTP layer can serialize. Request shape:

    {"contents": ["<base64 descriptors>", ...], "earlyReturn": "true"}

The response holds one entry per blob, in order. A blob that fails is
reported as {"error": message} at its position; the other blobs are
still matched.
"""

import logging
from typing import Any, Iterable, List, Optional, Sequence, Tuple

from .cache_loader import CacheLoader
from .categories import ROUTE_PREFIX, configured_categories, route_for
from .category_cache import CategoryCache
from .descriptors import decode_descriptors
from .errors import InvalidRequest, MalformedDescriptorData
from .knn import get_backend
from .matcher import DEFAULT_THRESHOLD, DEFAULT_TOP_N, Matcher

logger = logging.getLogger(__name__)

Response = Tuple[int, Any]


class DetectionService:
    """Decodes request blobs and runs them through the matcher."""

    def __init__(self,
                 matcher: Matcher,
                 categories: Optional[Iterable[str]] = None,
                 threshold: int = DEFAULT_THRESHOLD,
                 top_n: int = DEFAULT_TOP_N):
        self.matcher = matcher
        self.categories = tuple(categories) if categories is not None else tuple(matcher.cache.categories)
        self.threshold = threshold
        self.top_n = top_n
        self.routes = {route_for(category): category for category in self.categories}

    @classmethod
    def from_env(cls, cache_dir: Optional[str] = None, backend: Optional[str] = None,
                 preload: bool = False) -> "DetectionService":
        """Build the full stack from environment configuration."""
        cache = CategoryCache(CacheLoader(cache_dir))
        if preload:
            cache.preload()
        matcher = Matcher(cache, backend=get_backend(backend))
        return cls(matcher, categories=configured_categories())

    def health(self) -> str:
        return "Server is running"

    def detect(self, category: str, contents: Sequence[Any],
               early_return: bool = False) -> List[Any]:
        """
        Match each blob in order against a category.

        Blobs are processed sequentially; the first one may trigger the
        category's lazy load and the rest reuse it.
        """
        results: List[Any] = []
        for content in contents:
            query = None
            try:
                if not isinstance(content, (str, bytes)):
                    raise MalformedDescriptorData(
                        f"Expected a base64 string, got {type(content).__name__}"
                    )
                query = decode_descriptors(content)
                matches = self.matcher.match(
                    query, category,
                    threshold=self.threshold,
                    top_n=self.top_n,
                    early_exit=early_return,
                )
                results.append([m.to_dict() for m in matches])
            except MalformedDescriptorData as e:
                logger.error(f"Error processing descriptor content for type {category}: {e}")
                results.append({"error": str(e)})
            except Exception as e:
                logger.exception(f"Unexpected error matching content for type {category}")
                results.append({"error": str(e) or type(e).__name__})
            finally:
                del query
        return results

    def handle_request(self, category: str, body: Any) -> Response:
        """Validate a detection request and produce its response."""
        if category not in self.categories:
            return 404, {"error": f"Unknown category: {category}"}

        try:
            contents, early_return = parse_request(body)
            if not contents:
                return 200, []
            return 200, self.detect(category, contents, early_return)
        except InvalidRequest as e:
            logger.warning(f"Rejected request for {category}: {e}")
            return 400, {"error": str(e)}
        except Exception as e:
            logger.exception(f"Error in {route_for(category)}")
            return 500, {"error": str(e) or "Internal server error"}

    def handle_route(self, path: str, body: Any) -> Response:
        """
        Dispatch a POST body sent to /v1/detect/<category>.

        This only resolves the path to a category; binding it to an HTTP
        server is left to the hosting framework, which passes the request
        path and parsed JSON body and writes back the (status, payload) pair.
        Paths under the detect prefix with no configured category get a
        404 naming the category.
        """
        path = path.rstrip("/")
        category = self.routes.get(path)
        if category is None:
            if path.startswith(ROUTE_PREFIX.rstrip("/")):
                return 404, {"error": f"Unknown category: {path[len(ROUTE_PREFIX):]}"}
            return 404, {"error": f"Not found: {path}"}
        return self.handle_request(category, body)


def parse_request(body: Any) -> Tuple[List[Any], bool]:
    """
    Extract (contents, early_return) from a request body.

    Raises:
        InvalidRequest: If the body is not an object or contents is not a list.
    """
    if not isinstance(body, dict) or not isinstance(body.get("contents"), list):
        raise InvalidRequest("Invalid request body. Expecting { contents: [base64string] }")

    early_return = body.get("earlyReturn") == "true"
    return body["contents"], early_return
