# optcg/services/images.py
from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from urllib.parse import urljoin, urlparse

import requests

from optcg.constants import USER_AGENT
from optcg.errors import ImageFetchError
from optcg.services.db import CatalogStore

logger = logging.getLogger(__name__)

UNSAFE_NAME_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


def safe_dir_name(name: str) -> str:
    safe = UNSAFE_NAME_RE.sub("_", (name or "").strip())
    safe = safe.rstrip(" .")
    return safe or "unknown"


def resolve_url(image_src: str, site_base_url: str) -> str:
    if not image_src:
        return ""
    # "../images/cardlist/card/OP05-002.png" and "/images/..." are both relative to the site
    return urljoin(site_base_url.rstrip("/") + "/", image_src)


def file_name_from_url(url: str) -> str:
    return Path(urlparse(url).path).name


def series_dir(images_root: Path, series_name: str) -> Path:
    d = images_root / safe_dir_name(series_name)
    d.mkdir(parents=True, exist_ok=True)
    return d


def build_session() -> requests.Session:
    session = requests.Session()
    session.headers.update({"User-Agent": USER_AGENT})
    return session


class ImageFetcher:
    def __init__(
        self,
        store: CatalogStore,
        images_root: Path,
        session: requests.Session | None = None,
    ) -> None:
        self.store = store
        self.images_root = Path(images_root)
        self.session = session or build_session()

    def fetch(self, cid: int, image_src: str, series_name: str, site_base_url: str) -> Path:
        """
        Download one variant image to ``images/<series>/<file name>`` and
        record it in the store.

        Single attempt. The body is written only after it has been fully
        received, through a temporary file, so a failure never leaves a
        truncated image behind.
        """
        url = resolve_url(image_src, site_base_url)
        if not url:
            raise ImageFetchError(cid, image_src, "empty image url")
        file_name = file_name_from_url(url)
        if not file_name:
            raise ImageFetchError(cid, url, "url has no file name")

        try:
            dest = series_dir(self.images_root, series_name) / file_name
        except OSError as ex:
            raise ImageFetchError(cid, url, f"cannot create directory: {ex}") from ex

        try:
            r = self.session.get(url, headers={"Referer": site_base_url})
            r.raise_for_status()
            body = r.content
        except requests.RequestException as ex:
            raise ImageFetchError(cid, url, str(ex)) from ex

        tmp = dest.with_suffix(dest.suffix + ".tmp")
        try:
            with open(tmp, "wb") as f:
                f.write(body)
            os.replace(tmp, dest)
        except OSError as ex:
            raise ImageFetchError(cid, url, f"cannot write {dest}: {ex}") from ex
        finally:
            if tmp.exists():
                try:
                    tmp.unlink()
                except OSError:
                    logger.warning("Could not remove temporary file %s", tmp)

        self.store.record_file(cid, dest)
        logger.debug("cid=%s saved %s", cid, dest)
        return dest
