"""CLI entrypoint for the downloader package.
"""
import argparse
import asyncio
import logging
import sys

import httpx

from .cache import RepositoryCache
from .entity import RemoteRepository
from .errors import DownloaderError
from .session import reset_session
from .utils import cache_dir_from_env, config_from_env


def _build_parser():
    p = argparse.ArgumentParser(prog="modelmirror.downloader")
    # Only repository selection is exposed here. Transfer behaviour (timeouts,
    # retries, token) is controlled via MODELMIRROR_DL_* environment variables.
    p.add_argument("--name", required=True, help="remote repository, e.g. org/model-coreml")
    p.add_argument("--folder", required=False, help="local folder name (default: last segment of --name)")
    p.add_argument("--repo-type", default="model", choices=("model", "dataset"))
    p.add_argument("--required", action="append", default=[],
                   help="required bundle or file path, optionally prefixed with a variant folder (repeatable)")
    p.add_argument("--variant", required=False, help="variant tag (informational)")
    p.add_argument("--dest", required=False, help="cache base directory (default: MODELMIRROR_CACHE_DIR)")
    p.add_argument("--verify", action="store_true",
                   help="check required bundles after download, re-downloading once if broken")
    p.add_argument("--verbose", action="store_true")

    return p


async def _run(args) -> None:
    config = config_from_env()
    repo = RemoteRepository(
        remote_path=args.name,
        folder_name=args.folder or args.name.rstrip("/").rsplit("/", 1)[-1],
        variant=args.variant,
        repo_type=args.repo_type,
    )
    cache = RepositoryCache(args.dest or cache_dir_from_env(), config=config)
    try:
        if args.verify:
            await cache.load(repo, args.required)
        else:
            await cache.ensure(repo, args.required)
    finally:
        await reset_session()


def main(argv=None):
    argv = argv if argv is not None else sys.argv[1:]
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[Downloader] %(levelname)s %(message)s",
        stream=sys.stderr,
    )

    print(f"Performing download source={args.name} dest={args.dest or cache_dir_from_env()}")
    try:
        asyncio.run(_run(args))
    except (DownloaderError, httpx.HTTPError, OSError) as e:
        print(f"Download failed: {e}", file=sys.stderr)
        return 1
    print("Download finished")
    return 0


if __name__ == "__main__":
    sys.exit(main())
