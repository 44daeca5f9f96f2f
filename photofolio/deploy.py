import io

import requests
from loguru import logger

from photofolio import catalog_store
from photofolio.cancel import CancelToken
from photofolio.catalog_store import PUBLIC_CATALOG_PATH
from photofolio.errors import FetchFailure, MalformedCatalog
from photofolio.models import Catalog

REQUEST_TIMEOUT = 60


def public_catalog_url(site_url: str) -> str:
    return site_url.rstrip("/") + "/" + PUBLIC_CATALOG_PATH


def get_remote_catalog(site_url: str, cancel: CancelToken) -> Catalog:
    """
    Download the catalog published with the site. A missing or malformed
    catalog is treated as an empty one, so the next sync rebuilds everything.
    """
    url = public_catalog_url(site_url)
    logger.info("fetch deployed catalog from {}", url)
    cancel.raise_if_cancelled()

    try:
        resp = requests.get(url, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise FetchFailure(f"cannot fetch deployed catalog: {e}") from e

    if resp.status_code == 404:
        logger.warning("http 404 for {}, using empty catalog", url)
        return Catalog()
    if resp.status_code != 200:
        raise FetchFailure(f"cannot fetch deployed catalog: {resp.status_code} {resp.reason}")

    cancel.raise_if_cancelled()
    try:
        return catalog_store.load_gzip(io.BytesIO(resp.content))
    except MalformedCatalog as e:
        logger.warning("malformed deployed catalog ({}), using empty catalog", e)
        return Catalog()


def request_build(hook_url: str, cancel: CancelToken):
    """
    Fire the deploy build hook once. No retry.
    """
    logger.info("post {}", hook_url)
    cancel.raise_if_cancelled()
    try:
        resp = requests.post(hook_url, json={}, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        raise FetchFailure(f"build request failed: {e}") from e
    if resp.status_code >= 400:
        logger.warning("build hook answered {} {}", resp.status_code, resp.reason)
