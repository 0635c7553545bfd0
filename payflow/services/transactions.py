from typing import List, Optional

from payflow.schemas.transaction import Transaction
from payflow.services.transport import ApiClient


class TransactionService:
    def __init__(self, api: ApiClient):
        self.api = api

    async def history(self, page: int = 1, per_page: int = 20, status: Optional[str] = None) -> List[Transaction]:
        """Get the user's transaction history, newest first"""
        return await self.api.request_with_query(
            "/transactions",
            params={"page": page, "per_page": per_page, "status": status},
            response_model=List[Transaction],
        )

    async def get(self, transaction_id: int) -> Transaction:
        return await self.api.request(
            f"/transactions/{transaction_id}",
            response_model=Transaction,
        )
