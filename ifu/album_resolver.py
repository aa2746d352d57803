import logging

from .api import Api
from .models import AlbumRecord


class AlbumResolver:
    """
    Maps album folder names to remote album ids.

    The remote album list is fetched once per run; albums created during the
    run are added to the same index. Entries are never removed or renamed.
    """

    def __init__(self, api: Api) -> None:
        self.api = api
        self.logger = logging.getLogger(__name__)
        self._index: dict[str, AlbumRecord] = {}

    def load(self) -> int:
        """
        Fetch every remote album into the local index.

        Returns:
            int: Number of albums known after loading.

        Raises:
            ApiError: If the server rejects the request.
            requests.RequestException: On connection errors.
        """
        for album in self.api.list_albums():
            # Later entries win when the server returns duplicate names.
            self._index[album.name] = album
        self.logger.debug(f"Loaded {len(self._index)} remote albums")
        return len(self._index)

    def resolve(self, name: str) -> AlbumRecord:
        """
        Return the album for an exact, case-sensitive folder name, creating it if absent.

        Raises:
            ApiError: If the album has to be created and creation fails.
            requests.RequestException: On connection errors.
        """
        if album := self._index.get(name):
            return album

        album = self.api.create_album(name)
        album = AlbumRecord(name=name, id=album.id, created=True)
        self._index[name] = album
        return album

    def __contains__(self, name: str) -> bool:
        return name in self._index

    def __len__(self) -> int:
        return len(self._index)
