from typing import AsyncGenerator
from fastapi import Request
from sqlalchemy.ext.asyncio import  AsyncSession


async def get_session(request: Request) -> AsyncGenerator[AsyncSession,None]:
    async with request.app.state.db.session() as session:  # session closed (and any open txn rolled back) at the end of the with block
        yield session
