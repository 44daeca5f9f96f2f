"""
Static site output.

SiteGenerator renders the grouped catalog through Jinja2 templates found in a
template directory:

    home.j2         -> index.html
    collection.j2   -> <collection slug>/index.html

Every other file in the template directory is copied as-is, and the catalog
itself is published at .portfolio/catalog.json.gz so the next sync can
download it.

SiteBuilder instead hands the catalog to an external build command described
by build.json in the template directory.
"""

import json
import os
import shutil
import subprocess
import tempfile
import threading
from pathlib import Path
from typing import List
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from jinja2 import Environment, FileSystemLoader
from loguru import logger

from photofolio import catalog_store
from photofolio.cancel import CancelToken
from photofolio.catalog_store import PUBLIC_CATALOG_PATH
from photofolio.errors import CommandError
from photofolio.grouping import Collection, group
from photofolio.models import Catalog

TEMPLATE_SUFFIX = ".j2"
HOME_TEMPLATE = "home.j2"
COLLECTION_TEMPLATE = "collection.j2"
BUILD_CONFIG = "build.json"


# -----------------------------
# IMAGE URL FILTERS
# -----------------------------

def _with_query(url: str, **params) -> str:
    parts = urlsplit(str(url))
    query = parse_qsl(parts.query, keep_blank_values=True)
    query.extend((key, str(value)) for key, value in params.items())
    return urlunsplit(parts._replace(query=urlencode(query)))


def netlify_image(url: str) -> str:
    return f"/.netlify/images?url={quote(str(url), safe='')}"


def size(url: str, width, height) -> str:
    return _with_query(url, w=width, h=height)


def image_format(url: str, fmt) -> str:
    return _with_query(url, fm=fmt)


def quality(url: str, value) -> str:
    return _with_query(url, q=value)


def fit(url: str, mode) -> str:
    return _with_query(url, fit=mode)


IMAGE_FILTERS = {
    "netlify_image": netlify_image,
    "size": size,
    "image_format": image_format,
    "quality": quality,
    "fit": fit,
}


class SiteGenerator:

    def generate(self, catalog: Catalog, template_dir, output_dir) -> Path:
        template_dir = Path(template_dir).resolve()
        output_dir = Path(output_dir).resolve()

        logger.info("generate website with {} photos", len(catalog.photos))
        logger.info("template: {}", template_dir)
        logger.info("output: {}", output_dir)

        if not template_dir.is_dir():
            raise CommandError(f"template directory does not exist: {template_dir}")
        if output_dir.exists():
            raise CommandError(f"output directory already exists: {output_dir}")

        collections = group(catalog)
        _check_slugs(collections)

        env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        env.filters.update(IMAGE_FILTERS)

        output_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{output_dir.name}.", dir=str(output_dir.parent)))
        try:
            self._render(env, HOME_TEMPLATE, staging / "index.html",
                         collections=collections, catalog=catalog)
            for collection in collections:
                self._render(env, COLLECTION_TEMPLATE, staging / collection.slug / "index.html",
                             collection=collection, collections=collections, catalog=catalog)
            self._copy_static(template_dir, staging)
            catalog_store.save_file(catalog, staging / PUBLIC_CATALOG_PATH)
            staging.rename(output_dir)
        except BaseException:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        return output_dir

    @staticmethod
    def _render(env: Environment, template_name: str, dest: Path, **context):
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("render {} -> {}", template_name, dest)
        env.get_template(template_name).stream(**context).dump(str(dest), encoding="utf-8")

    @staticmethod
    def _copy_static(template_dir: Path, dest_dir: Path):
        for source in sorted(template_dir.rglob("*")):
            if not source.is_file() or source.suffix.lower() == TEMPLATE_SUFFIX:
                continue
            dest = dest_dir / source.relative_to(template_dir)
            dest.parent.mkdir(parents=True, exist_ok=True)
            logger.info("copy {} -> {}", source, dest)
            shutil.copy2(source, dest)


def _check_slugs(collections: List[Collection]):
    seen = {}
    for collection in collections:
        if not collection.slug:
            raise CommandError(f"collection '{collection.name}' has no usable slug")
        if collection.slug in seen:
            raise CommandError(
                f"collections '{seen[collection.slug]}' and '{collection.name}' share slug '{collection.slug}'"
            )
        seen[collection.slug] = collection.name


class SiteBuilder:

    def build(self, template_dir, catalog: Catalog, cancel: CancelToken) -> Path:
        template_dir = Path(template_dir).resolve()
        if not template_dir.is_dir():
            raise CommandError(f"template dir does not exist at {template_dir}")

        config_path = template_dir / BUILD_CONFIG
        if not config_path.exists():
            raise CommandError(f"build config does not exist at {config_path}")

        logger.info("using build config at {}", config_path)
        command, output = _read_build_config(config_path)

        logger.info("generating in directory {}", template_dir)
        logger.info("generating with command '{}'", " ".join(command))

        if os.name == "nt":
            command = ["cmd", "/C"] + command

        payload = json.dumps(catalog_store.catalog_to_dict(catalog)).encode("utf-8")
        try:
            process = subprocess.Popen(command, cwd=str(template_dir), stdin=subprocess.PIPE)
        except OSError as e:
            raise CommandError(f"failed to run build process: {e}") from e

        feeder = threading.Thread(target=_feed, args=(process, payload), daemon=True)
        feeder.start()
        exit_code = _wait(process, cancel)
        feeder.join()
        if exit_code != 0:
            raise CommandError(f"build process failed, exit code {exit_code}")

        output_dir = (template_dir / output).resolve()
        if not output_dir.is_dir():
            raise CommandError(f"expected output dir does not exist at {output_dir}")

        logger.info("using output dir at {}", output_dir)
        catalog_path = output_dir / PUBLIC_CATALOG_PATH
        logger.info("writing catalog to {}", catalog_path)
        catalog_store.save_file(catalog, catalog_path)
        return output_dir


def _read_build_config(config_path: Path):
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config = json.load(f)
    except ValueError as e:
        raise CommandError(f"invalid build config at {config_path}: {e}") from e

    command = config.get("build") if isinstance(config, dict) else None
    if not isinstance(command, list) or not command or not all(isinstance(c, str) for c in command):
        raise CommandError("build command required")

    output = config.get("output", "")
    if not isinstance(output, str):
        raise CommandError(f"invalid output dir in {config_path}")
    return command, output


def _feed(process: subprocess.Popen, payload: bytes):
    try:
        process.stdin.write(payload)
        process.stdin.close()
    except OSError:
        logger.warning("build process closed its input early")


def _wait(process: subprocess.Popen, cancel: CancelToken) -> int:
    while True:
        try:
            return process.wait(timeout=0.5)
        except subprocess.TimeoutExpired:
            if cancel.cancelled:
                process.kill()
                process.wait()
                cancel.raise_if_cancelled()
