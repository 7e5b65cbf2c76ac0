"""Core services of the trail catalog pipeline."""

from trailcatalog.services.catalog_cache import CatalogCache  # noqa: F401
from trailcatalog.services.filtering import filter_and_sort  # noqa: F401
from trailcatalog.services.likes import LikeState, MutationCoordinator  # noqa: F401
from trailcatalog.services.pagination import PaginationWindow  # noqa: F401
from trailcatalog.services.retry import RetryPolicy, RetryScheduler  # noqa: F401
from trailcatalog.services.session import CatalogSession  # noqa: F401
from trailcatalog.services.source_fallback import SourceFallbackFetch  # noqa: F401
