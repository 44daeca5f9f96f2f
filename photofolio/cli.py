"""
photofolio command line tools.

    photofolio site sync TEMPLATE_DIR OUTPUT_DIR     sync the catalog with the drive and generate the site
    photofolio site generate TEMPLATE_DIR CATALOG OUTPUT_DIR
    photofolio site build TEMPLATE_DIR CATALOG       run the template's own build command
    photofolio site request-build                    trigger the deploy build hook
    photofolio drive photos                          list drive photos
    photofolio catalog from-remote|from-drive|from-remote-drive [OUTPUT]
    photofolio catalog from-local-drive [FILE]
    photofolio catalog show-photos [FILE_OR_URL]
    photofolio exif from-image FILE_OR_URL
    photofolio exif from-catalog FILE_OR_URL
"""

import argparse
import io
import signal
import sys
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlsplit

import requests
from loguru import logger

from photofolio import catalog_store, deploy
from photofolio.auth import AuthManager
from photofolio.cancel import CancelToken
from photofolio.config import Settings, load_user_config
from photofolio.decoder import PhotoDecoder
from photofolio.drive import DriveClient
from photofolio.errors import CommandError, FetchFailure, PhotofolioError
from photofolio.log import DEFAULT_FORMAT, init_logging
from photofolio.models import Catalog
from photofolio.site import SiteBuilder, SiteGenerator
from photofolio.syncer import CatalogSync
from photofolio.tags import Tag, tag_size

DEFAULT_CATALOG_FILE = "catalog.json.gz"


class App:
    """
    Services for one command invocation, built from its settings.
    """

    def __init__(self, settings: Settings, cancel: CancelToken):
        self.settings = settings
        self.cancel = cancel
        self._drive = None

    @property
    def drive(self) -> DriveClient:
        if self._drive is None:
            auth_manager = AuthManager(
                credentials_file=Path(self.settings.get("drive.credentials_file")),
                token_file=Path(self.settings.get("drive.token_file")),
                service_account_file=self.settings.get("drive.service_account_file"),
            )
            self._drive = DriveClient(auth_manager, self.settings.require("drive.folder_id"))
        return self._drive

    def syncer(self) -> CatalogSync:
        return CatalogSync(
            self.drive,
            decoder=PhotoDecoder(),
            max_tag_bytes=self.settings.get_int("sync.max_tag_bytes", 1024),
            workers=self.settings.get_int("sync.workers", 1),
        )

    def remote_catalog(self) -> Catalog:
        return deploy.get_remote_catalog(self.settings.require("deploy.site_url"), self.cancel)


# -----------------------------
# SITE
# -----------------------------

def _load_local(path: str) -> Catalog:
    if not Path(path).is_file():
        raise CommandError(f"catalog file not found: {path}")
    return catalog_store.load_file(path)


def site_sync(app: App, args):
    previous = app.remote_catalog()
    changed, catalog = app.syncer().reconcile(previous, app.cancel)
    if not changed and not args.force:
        logger.info("site is up to date, nothing to generate")
        return
    SiteGenerator().generate(catalog, args.template_dir, args.output_dir)


def site_generate(app: App, args):
    catalog = _load_local(args.catalog)
    SiteGenerator().generate(catalog, args.template_dir, args.output_dir)


def site_build(app: App, args):
    catalog = _load_local(args.catalog)
    SiteBuilder().build(args.template_dir, catalog, app.cancel)


def site_request_build(app: App, args):
    deploy.request_build(app.settings.require("deploy.build_hook_url"), app.cancel)


# -----------------------------
# DRIVE
# -----------------------------

def drive_photos(app: App, args):
    count = 0
    for photo in app.drive.enumerate(app.cancel):
        print(f"{'/'.join(photo.path)}  id={photo.id} ctag={photo.content_fingerprint} "
              f"etag={photo.meta_fingerprint} modified={photo.modified_at.isoformat()}")
        count += 1
    logger.info("{} photos found", count)


# -----------------------------
# CATALOG
# -----------------------------

def _check_new_file(path: str):
    if Path(path).exists():
        raise CommandError(f"output file already exists: {path}")


def _save(catalog: Catalog, path: str):
    catalog_store.save_file(catalog, path)
    logger.info("catalog saved to {}", path)


def catalog_from_remote(app: App, args):
    _check_new_file(args.output)
    _save(app.remote_catalog(), args.output)


def catalog_from_drive(app: App, args):
    _check_new_file(args.output)
    _, catalog = app.syncer().reconcile(Catalog(), app.cancel)
    _save(catalog, args.output)


def catalog_from_remote_drive(app: App, args):
    _check_new_file(args.output)
    previous = app.remote_catalog()
    _, catalog = app.syncer().reconcile(previous, app.cancel)
    _save(catalog, args.output)


def catalog_from_local_drive(app: App, args):
    previous = _load_local(args.file)
    changed, catalog = app.syncer().reconcile(previous, app.cancel)
    if changed:
        _save(catalog, args.file)


def _is_url(value: str) -> bool:
    return urlsplit(value).scheme in ("http", "https")


def read_source(file_or_url: str, cancel: CancelToken) -> io.BytesIO:
    """
    Read a local file or an http(s) URL into memory.
    """
    cancel.raise_if_cancelled()
    if _is_url(file_or_url):
        try:
            resp = requests.get(file_or_url, timeout=deploy.REQUEST_TIMEOUT)
        except requests.RequestException as e:
            raise FetchFailure(f"cannot fetch {file_or_url}: {e}") from e
        if resp.status_code != 200:
            raise FetchFailure(f"cannot fetch {file_or_url}: {resp.status_code} {resp.reason}")
        return io.BytesIO(resp.content)

    path = Path(file_or_url)
    if not path.is_file():
        raise CommandError(f"file not found: {file_or_url}")
    return io.BytesIO(path.read_bytes())


def load_catalog_source(file_or_url: str, cancel: CancelToken) -> Catalog:
    stream = read_source(file_or_url, cancel)
    if catalog_store.is_gzip_name(urlsplit(file_or_url).path if _is_url(file_or_url) else file_or_url):
        return catalog_store.load_gzip(stream)
    return catalog_store.load_json(stream)


def catalog_show_photos(app: App, args):
    catalog = load_catalog_source(args.source, app.cancel)
    for photo in catalog.photos:
        print(f"{'/'.join(photo.path)}  id={photo.id} {photo.width}x{photo.height} "
              f"taken={photo.taken_at.isoformat() if photo.taken_at else '-'} "
              f"caption={photo.caption or '-'}")
    logger.info("{} photos in catalog", len(catalog.photos))


# -----------------------------
# EXIF
# -----------------------------

def format_tags(tags: Optional[Dict[str, Tag]]) -> str:
    if not tags:
        return "no exif data present"

    rows = [("Tag", "Type", "Bytes", "Value")]
    for name in sorted(tags):
        tag = tags[name]
        value = str(tag.value)
        value = value[:97] + "..." if len(value) > 100 else value
        size = tag_size(tag)
        rows.append((name, tag.type.name, "?" if size is None else str(size), value))

    widths = [max(len(row[i]) for row in rows) for i in range(3)]
    lines = []
    for row in rows:
        lines.append(" | ".join(cell.ljust(width) for cell, width in zip(row[:3], widths)) + " | " + row[3])
    return "\n".join(lines)


def exif_from_image(app: App, args):
    decoded = PhotoDecoder().decode(read_source(args.source, app.cancel))
    print(format_tags(decoded.tags))


def exif_from_catalog(app: App, args):
    catalog = load_catalog_source(args.source, app.cancel)
    for photo in catalog.photos:
        print("/".join(photo.path))
        print(format_tags(photo.tags))


# -----------------------------
# PARSER
# -----------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="photofolio", description="photo portfolio command line tools")
    parser.add_argument("--settings", default=None, help="path to json settings file")
    parser.add_argument("--log-format", default=DEFAULT_FORMAT, help="log message format")
    parser.add_argument("--log-debug", action="store_true", help="whether to log debug information")
    parser.add_argument("--timeout", type=float, default=0, help="max execution time for command, in seconds")
    groups = parser.add_subparsers(dest="group", metavar="COMMAND")

    site = groups.add_parser("site", help="website tools").add_subparsers(dest="command", metavar="COMMAND")
    cmd = site.add_parser("sync", help="sync the deployed catalog with the drive and generate the website")
    cmd.add_argument("template_dir")
    cmd.add_argument("output_dir")
    cmd.add_argument("--force", action="store_true", help="generate even if nothing changed")
    cmd.set_defaults(handler=site_sync)
    cmd = site.add_parser("generate", help="generate the website from a catalog file")
    cmd.add_argument("template_dir")
    cmd.add_argument("catalog")
    cmd.add_argument("output_dir")
    cmd.set_defaults(handler=site_generate)
    cmd = site.add_parser("build", help="build the website with the template's build command")
    cmd.add_argument("template_dir")
    cmd.add_argument("catalog")
    cmd.set_defaults(handler=site_build)
    cmd = site.add_parser("request-build", help="request a deploy build")
    cmd.set_defaults(handler=site_request_build)

    drive = groups.add_parser("drive", help="drive tools").add_subparsers(dest="command", metavar="COMMAND")
    cmd = drive.add_parser("photos", help="list photos")
    cmd.set_defaults(handler=drive_photos)

    catalog = groups.add_parser("catalog", help="catalog file tools").add_subparsers(dest="command", metavar="COMMAND")
    for name, handler, help_text in (
        ("from-remote", catalog_from_remote, "create a catalog file from the deployed site"),
        ("from-drive", catalog_from_drive, "create a catalog file from the drive"),
        ("from-remote-drive", catalog_from_remote_drive, "create a catalog file from the deployed site and the drive"),
    ):
        cmd = catalog.add_parser(name, help=help_text)
        cmd.add_argument("output", nargs="?", default=DEFAULT_CATALOG_FILE)
        cmd.set_defaults(handler=handler)
    cmd = catalog.add_parser("from-local-drive", help="update a local catalog file from the drive")
    cmd.add_argument("file", nargs="?", default=DEFAULT_CATALOG_FILE)
    cmd.set_defaults(handler=catalog_from_local_drive)
    cmd = catalog.add_parser("show-photos", help="show photo information from a catalog file")
    cmd.add_argument("source", nargs="?", default=DEFAULT_CATALOG_FILE, metavar="FILE_OR_URL")
    cmd.set_defaults(handler=catalog_show_photos)

    exif = groups.add_parser("exif", help="exif tools").add_subparsers(dest="command", metavar="COMMAND")
    cmd = exif.add_parser("from-image", help="show exif for an image")
    cmd.add_argument("source", metavar="FILE_OR_URL")
    cmd.set_defaults(handler=exif_from_image)
    cmd = exif.add_parser("from-catalog", help="show exif for all photos in a catalog")
    cmd.add_argument("source", metavar="FILE_OR_URL")
    cmd.set_defaults(handler=exif_from_catalog)

    return parser


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    if getattr(args, "handler", None) is None:
        parser.print_help()
        return 2

    init_logging(args.log_debug, args.log_format)
    logger.debug("debug logging enabled")

    cancel = CancelToken()
    previous_sigint = signal.signal(signal.SIGINT, lambda signum, frame: cancel.cancel("command interrupted"))
    try:
        settings = load_user_config(args.settings)
        if settings.get("log.dir"):
            init_logging(args.log_debug, args.log_format, settings.get("log.dir"))

        if args.timeout:
            logger.info("using command timeout of {:g} seconds", args.timeout)
            cancel.cancel_after(args.timeout)

        logger.info(" ".join([parser.prog] + list(argv)))
        args.handler(App(settings, cancel), args)
        logger.info("done")
        return 0
    except PhotofolioError as e:
        logger.error(str(e))
        return 1
    except Exception as e:
        logger.opt(exception=e).debug("unexpected failure")
        logger.error("{}: {}", type(e).__name__, e)
        return 1
    finally:
        cancel.dispose()
        signal.signal(signal.SIGINT, previous_sigint)
