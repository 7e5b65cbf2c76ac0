"""Document sources consulted by the catalog pipeline."""

from trailcatalog.stores.base import (  # noqa: F401
    Document,
    DocumentStore,
    FieldFilter,
    QuerySource,
    StoreQuery,
    public_guides_query,
    user_guides_query,
)
from trailcatalog.stores.firestore import FirestoreDocumentStore  # noqa: F401
from trailcatalog.stores.snapshot import SnapshotDocumentStore  # noqa: F401
