"""Best-effort embedding of tagged worksheets before a model round.

When the user tags sheets (or the whole workbook) in a message, each sheet's
content is embedded so later features can use it for semantic lookup. The
vectors are kept in memory for the life of the process. Failures are turned
into notices for the transcript and never stop the turn.
"""

import logging

from sheetchat_server.gateway.client import ModelGateway
from sheetchat_server.workbook.host import SpreadsheetHost

logger = logging.getLogger(__name__)

WORKBOOK_TAG = "workbook"


class SheetEmbedder:
    """Embeds worksheet content through the model gateway.

    Attributes:
        host: Spreadsheet host the sheet content is read from
        vectors: Latest embedding per sheet name
    """

    def __init__(self, host: SpreadsheetHost) -> None:
        self.host = host
        self.vectors: dict[str, list[float]] = {}

    async def embed_sheet(self, gateway: ModelGateway, sheet_name: str) -> list[float]:
        content = await self.host.get_sheet_content(sheet_name, include_metadata=True)
        vector = await gateway.embed(content)
        self.vectors[sheet_name] = vector
        logger.debug(f"Embedded worksheet {sheet_name}: {len(vector)} dimensions")
        return vector

    async def embed_all(self, gateway: ModelGateway) -> dict[str, list[float]]:
        """Embed every worksheet, skipping sheets that fail."""
        embedded: dict[str, list[float]] = {}
        for name in await self.host.get_worksheet_names():
            try:
                embedded[name] = await self.embed_sheet(gateway, name)
            except Exception as e:
                logger.warning(f"Error embedding worksheet {name}: {e}")
        return embedded

    async def prime(self, gateway: ModelGateway, tagged_sheets: list[str]) -> list[str]:
        """Embed the tagged sheets and describe what happened.

        Args:
            gateway: Gateway used for the embedding calls
            tagged_sheets: Sheet names, or ``"workbook"`` for every sheet

        Returns:
            One notice per outcome, suitable for assistant turns
        """
        if WORKBOOK_TAG in tagged_sheets:
            try:
                await self.embed_all(gateway)
            except Exception as e:
                logger.warning(f"Error creating embeddings for all worksheets: {e}")
                return ["Error creating embeddings for all worksheets. Please try again."]
            return ["Embeddings for all worksheets created successfully."]

        notices = []
        for sheet_name in tagged_sheets:
            try:
                await self.embed_sheet(gateway, sheet_name)
            except Exception as e:
                logger.warning(f"Error creating embedding for {sheet_name}: {e}")
                notices.append("Error creating embedding. Please try again.")
            else:
                notices.append(f'Embedding for worksheet "{sheet_name}" created successfully.')
        return notices
