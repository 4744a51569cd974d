"""Services package: the transaction store, primary backends, the Notion mirror and summaries."""

from .notion_mirror import NotionMirror  # noqa: F401
from .summary_service import SummaryService  # noqa: F401
from .transaction_store import TransactionStore  # noqa: F401
