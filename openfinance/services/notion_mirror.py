"""NotionMirror: best-effort projection of transactions into a Notion database.

Each transaction becomes a page under a fixed database. Pages are archived rather than deleted so the database
keeps its history. The HTTP client is injected so one pooled ``httpx.AsyncClient`` serves every request.
"""

from datetime import datetime
from typing import Any

import httpx

from openfinance.core.errors import ConfigurationError, MirrorError
from openfinance.core.models import Location, Transaction, TransactionUpdate
from openfinance.core.settings import Settings
from openfinance.core.utils import get_logger, utcnow

TOKEN_PREFIXES = ("secret_", "ntn_")

# Column names of the Notion database
PROP_DESCRIPTION = "Description"
PROP_AMOUNT = "Amount"
PROP_MONTH = "Month"
PROP_CREDIT_CARD = "Credit Card"
PROP_CREATED = "Created"
PROP_UPDATED = "Updated"
PROP_CATEGORY = "Category"
PROP_TAGS = "Tags"
PROP_LOCATION = "Location"

logger = get_logger("openfinance.mirror")


def _title(content: str) -> dict[str, Any]:
    return {"title": [{"text": {"content": content}}]}


def _rich_text(content: str) -> dict[str, Any]:
    return {"rich_text": [{"text": {"content": content}}]}


def _date(moment: datetime) -> dict[str, Any]:
    return {"date": {"start": moment.isoformat()}}


def _multi_select(tags: list[str]) -> dict[str, Any]:
    return {"multi_select": [{"name": tag} for tag in tags]}


def location_text(location: Location) -> str:
    """Render a location as its address, or as ``"lat, lon"`` when there is none."""
    return location.address or f"{location.latitude}, {location.longitude}"


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Create the pooled HTTP client used to talk to the Notion API."""
    return httpx.AsyncClient(base_url=settings.notion_base_url, timeout=settings.notion_timeout)


class NotionMirror:
    """Mirror adapter writing transactions as pages of a Notion database."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        token: str | None,
        database_id: str | None,
        notion_version: str = "2022-06-28",
    ) -> None:
        """Initialize the mirror with an HTTP client, the integration token and the target database."""
        self.client = client
        self.token = token
        self.database_id = database_id
        self.notion_version = notion_version

    @classmethod
    def from_settings(cls, client: httpx.AsyncClient, settings: Settings) -> "NotionMirror":
        """Build the mirror from application settings."""
        return cls(client, settings.notion_token, settings.notion_database_id, settings.notion_version)

    @property
    def is_configured(self) -> bool:
        """Whether both credentials and the target database are present and plausible."""
        return bool(self.database_id and self.token and self.token.startswith(TOKEN_PREFIXES))

    def ensure_configured(self) -> None:
        """Raise ``ConfigurationError`` unless the mirror is fully configured."""
        if not self.database_id:
            raise ConfigurationError("NOTION_DATABASE_ID is not configured")
        if not self.token:
            raise ConfigurationError("NOTION_TOKEN is not configured")
        if not self.token.startswith(TOKEN_PREFIXES):
            msg = f"NOTION_TOKEN must start with one of {TOKEN_PREFIXES}, got '{self.token[:7]}'"
            raise ConfigurationError(msg)

    async def project(self, transaction: Transaction) -> str:
        """Create a page for the transaction and return its page id."""
        self.ensure_configured()
        properties: dict[str, Any] = {
            PROP_DESCRIPTION: _title(transaction.description),
            PROP_AMOUNT: {"number": transaction.amount},
            PROP_MONTH: _rich_text(transaction.month_year),
            PROP_CREDIT_CARD: {"checkbox": transaction.is_credit_card},
            PROP_CREATED: _date(transaction.created_at),
            PROP_UPDATED: _date(transaction.created_at),
        }
        if transaction.category:
            properties[PROP_CATEGORY] = _rich_text(transaction.category)
        if transaction.tags:
            properties[PROP_TAGS] = _multi_select(transaction.tags)
        if transaction.location:
            properties[PROP_LOCATION] = _rich_text(location_text(transaction.location))
        body = {"parent": {"database_id": self.database_id}, "properties": properties}
        page = await self._request("POST", "pages", "create page", json=body)
        page_id = page.get("id")
        if not page_id:
            raise MirrorError("Notion did not return a page id")
        logger.info(f"Created Notion page {page_id} for transaction {transaction.id}")
        return page_id

    async def reproject(self, mirror_ref: str, partial: TransactionUpdate) -> None:
        """Send the changed fields to an existing page and refresh its updated date."""
        self.ensure_configured()
        changes = partial.model_dump(exclude_unset=True)
        properties: dict[str, Any] = {PROP_UPDATED: _date(utcnow())}
        if "description" in changes:
            properties[PROP_DESCRIPTION] = _title(changes["description"])
        if "amount" in changes:
            properties[PROP_AMOUNT] = {"number": changes["amount"]}
        if "is_credit_card" in changes:
            properties[PROP_CREDIT_CARD] = {"checkbox": changes["is_credit_card"]}
        if "category" in changes:
            properties[PROP_CATEGORY] = _rich_text(changes["category"] or "")
        if "tags" in changes:
            properties[PROP_TAGS] = _multi_select(changes["tags"] or [])
        if "location" in changes:
            location = partial.location
            properties[PROP_LOCATION] = _rich_text(location_text(location) if location is not None else "")
        await self._request("PATCH", f"pages/{mirror_ref}", "update page", json={"properties": properties})
        logger.info(f"Updated Notion page {mirror_ref}: {sorted(properties)}")

    async def retire(self, mirror_ref: str) -> None:
        """Archive the page."""
        self.ensure_configured()
        await self._request("PATCH", f"pages/{mirror_ref}", "archive page", json={"archived": True})
        logger.info(f"Archived Notion page {mirror_ref}")

    async def check_reachable(self) -> bool:
        """Retrieve the target database; False when Notion answers with an error or cannot be reached."""
        self.ensure_configured()
        try:
            await self._request("GET", f"databases/{self.database_id}", "retrieve database")
        except MirrorError as exc:
            logger.error(f"Notion database {self.database_id} is not reachable: {exc}")
            return False
        logger.info(f"Notion database {self.database_id} is reachable")
        return True

    async def _request(self, method: str, path: str, action: str, **kwargs: Any) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Notion-Version": self.notion_version,
            "Content-Type": "application/json",
        }
        try:
            response = await self.client.request(method, path, headers=headers, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            msg = f"Failed to {action} in Notion: HTTP {exc.response.status_code} {_error_message(exc.response)}"
            raise MirrorError(msg) from exc
        except httpx.HTTPError as exc:
            raise MirrorError(f"Failed to {action} in Notion: {exc}") from exc
        return response.json()


def _error_message(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message", ""))
    except ValueError:
        return response.text
