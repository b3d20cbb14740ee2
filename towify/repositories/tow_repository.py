"""Repository for the ``tows`` table."""

from towify.core.scope import Table
from towify.repositories.base_repository import BaseRepository
from towify.schemas.tow import Tow


class TowRepository(BaseRepository[Tow]):
    table = Table.TOWS
    model = Tow
