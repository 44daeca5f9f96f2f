from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from loguru import logger

from photofolio.cancel import CancelToken
from photofolio.decoder import PhotoDecoder
from photofolio.drive import RemotePhoto
from photofolio.errors import InvalidPath
from photofolio.models import Catalog, CatalogPhoto
from photofolio.paths import decompose
from photofolio.tags import DEFAULT_MAX_TAG_BYTES, filter_tags


class CatalogSync:
    """
    Merges a previously published catalog with the live drive listing:
     - removed photos are dropped
     - renamed / moved photos get their new path and url
     - new photos and photos with new content are fetched and decoded
     - everything else is carried over untouched
    """

    def __init__(self, drive, decoder: PhotoDecoder = None, max_tag_bytes: int = DEFAULT_MAX_TAG_BYTES,
                 workers: int = 1):
        self.drive = drive
        self.decoder = decoder or PhotoDecoder()
        self.max_tag_bytes = max_tag_bytes
        self.workers = max(1, int(workers))

    def reconcile(self, previous: Catalog, cancel: CancelToken) -> Tuple[bool, Catalog]:
        """
        Return (changed, catalog). Raises FetchFailure if any photo cannot be
        fetched or decoded and Cancelled if `cancel` fires; no partial
        catalog is returned in either case.
        """
        known = previous.by_id()
        live = self._gallery_photos(self.drive.enumerate(cancel), cancel)

        # change type 1: photo removed from the drive
        removed = set(known) - set(live)
        final: Dict[str, CatalogPhoto] = {
            pid: photo for pid, photo in known.items() if pid not in removed
        }

        # change type 2: photo renamed, moved or given a new url
        meta_changed = []
        for pid, remote in live.items():
            stored = known.get(pid)
            if stored is None:
                continue
            if remote.location != stored.location or remote.path != stored.path:
                final[pid] = replace(stored, path=remote.path, location=remote.location)
                meta_changed.append(pid)

        # change type 3: photo added to the drive
        # change type 4: photo content changed on the drive
        added = [pid for pid in live if pid not in known]
        content_changed = [
            pid for pid in live
            if pid in known and known[pid].content_fingerprint != live[pid].content_fingerprint
        ]

        final.update(self._refresh([live[pid] for pid in added + content_changed], cancel))

        logger.info("{} photos removed", len(removed))
        logger.info("{} photos moved or renamed", len(meta_changed))
        logger.info("{} photos added", len(added))
        logger.info("{} photos changed", len(content_changed))

        changed = bool(removed or meta_changed or added or content_changed)
        if not changed:
            logger.info("no catalog changes found")
            return False, previous

        return True, Catalog.from_photos(final.values())

    # -----------------------------
    # INTERNAL HELPERS
    # -----------------------------

    def _gallery_photos(self, photos: Iterable[RemotePhoto], cancel: CancelToken) -> Dict[str, RemotePhoto]:
        """
        Index the drive listing by id, leaving out photos outside any collection.
        """
        live = {}
        for photo in photos:
            cancel.raise_if_cancelled()
            try:
                decompose(photo.path)
            except InvalidPath:
                logger.debug("skip {}: not in a collection", "/".join(photo.path))
                continue
            live[photo.id] = photo
        return live

    def _refresh(self, photos: List[RemotePhoto], cancel: CancelToken) -> Dict[str, CatalogPhoto]:
        if not photos:
            return {}

        results = {}
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            futures = {pool.submit(self._build_photo, photo, cancel): photo.id for photo in photos}
            try:
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
            except BaseException:
                for future in futures:
                    future.cancel()
                raise
        return results

    def _build_photo(self, remote: RemotePhoto, cancel: CancelToken) -> CatalogPhoto:
        cancel.raise_if_cancelled()
        stream = self.drive.fetch(remote.id, cancel)
        decoded = self.decoder.decode(stream)
        cancel.raise_if_cancelled()

        return CatalogPhoto(
            id=remote.id,
            path=remote.path,
            location=remote.location,
            width=decoded.width,
            height=decoded.height,
            meta_fingerprint=remote.meta_fingerprint,
            content_fingerprint=remote.content_fingerprint,
            modified_at=remote.modified_at,
            perceptual_hash=decoded.perceptual_hash,
            tags=filter_tags(decoded.tags, self.max_tag_bytes),
        )
