"""Build command implementation for imagekeeper.

Builds the image from the directory holding the configuration and
optionally tags, tests or uploads it. Tags are ``latest``, the current git
branch and every git tag on ``HEAD``, each reduced to its last path
component.

Typical usage::

    $ imagekeeper build            # build only, print the image id
    $ imagekeeper build --tag      # build and tag
    $ imagekeeper build --test     # build and run once
    $ imagekeeper build --upload   # build, tag and push unless already published
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import click
from docker.errors import APIError, BuildError, ContainerError, ImageNotFound

from imagekeeper.config import require
from imagekeeper.constants import DEFAULT_IMAGE_TAG
from imagekeeper.context import ImageKeeperContext, pass_context
from imagekeeper.core import UpstreamResolver
from imagekeeper.exceptions import ImageKeeperError
from imagekeeper.utils import HTTPClient, get_logger, print_info, print_success
from imagekeeper.utils import git
from imagekeeper.utils.docker import get_docker_client

logger = get_logger("commands.build")


@click.command()
@click.option("--tag", "task", flag_value="tag", help="Build and apply all tags.")
@click.option("--test", "task", flag_value="test", help="Build and run the image once.")
@click.option(
    "--upload",
    "task",
    flag_value="upload",
    help="Build, tag and push unless every tag is already published.",
)
@pass_context
def build(ctx: ImageKeeperContext, task: Optional[str]) -> None:
    """Build the container image."""
    config = ctx.config
    require(config, "image_name")
    image_name = config.image_name
    assert image_name is not None

    client = get_docker_client()
    context_dir = config.base_dir

    if task == "upload":
        tags = find_tags(context_dir)
        if _tags_published(config, image_name, tags):
            print_info("Image already exists, no need to upload!")
            return
        image = build_image(client, context_dir)
        tag_image(image, image_name, tags)
        for tag in tags:
            push_image(client, image_name, tag)
        return

    image = build_image(client, context_dir)

    if task == "tag":
        tag_image(image, image_name, find_tags(context_dir))
    elif task == "test":
        run_image_test(client, image.id)
    else:
        print_success("Build successful!")
        print_info("The image has not been tagged!")
        print_info(f"Use the image ID instead: {image.id}")


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def _basename(ref: str) -> str:
    return ref.rstrip("/").rsplit("/", 1)[-1]


def find_tags(cwd: Optional[Path] = None) -> List[str]:
    """``latest``, the checked out branch and all tags on ``HEAD``."""
    tags = [DEFAULT_IMAGE_TAG]

    # empty in detached HEAD state
    branch = git.current_branch(cwd)
    if branch:
        tags.append(_basename(branch))

    tags.extend(_basename(tag) for tag in git.tags_at_head(cwd))
    return tags


def _tags_published(config, image_name: str, tags: List[str]) -> bool:
    with HTTPClient(timeout=config.timeout, max_retries=config.max_retries) as http:
        published = set(UpstreamResolver(http).list_registry_tags(image_name))
    missing = [tag for tag in tags if tag not in published]
    logger.debug("Tags not yet published: %s", missing)
    return not missing


def build_image(client, context_dir: Path):
    """Build the image in ``context_dir`` and return it."""
    logger.info("Building image from %s", context_dir)
    try:
        image, output = client.images.build(path=str(context_dir), rm=True)
    except BuildError as exc:
        for chunk in exc.build_log:
            if "stream" in chunk:
                logger.debug(chunk["stream"].rstrip())
        raise ImageKeeperError("Image build failed", {"reason": exc.msg}) from exc
    except APIError as exc:
        raise ImageKeeperError("Image build failed", {"reason": str(exc)}) from exc

    for chunk in output:
        if "stream" in chunk:
            logger.debug(chunk["stream"].rstrip())
    return image


def tag_image(image, image_name: str, tags: List[str]) -> None:
    for tag in tags:
        image.tag(image_name, tag=tag)
        print_info(f"Tagged image: {image_name}:{tag}")


def run_image_test(client, image_id: str) -> None:
    """Run ``image_id`` once in a throwaway container and print its output."""
    try:
        output = client.containers.run(image_id, remove=True)
    except (ContainerError, ImageNotFound, APIError) as exc:
        raise ImageKeeperError("Image test failed", {"reason": str(exc)}) from exc
    print_info(output.decode(errors="replace").rstrip())


def push_image(client, image_name: str, tag: str) -> None:
    """Push ``image_name:tag`` and fail on the first reported error."""
    logger.info("Pushing %s:%s", image_name, tag)
    for chunk in client.images.push(image_name, tag=tag, stream=True, decode=True):
        if "error" in chunk:
            raise ImageKeeperError(
                f"Failed to push {image_name}:{tag}",
                {"reason": chunk["error"]},
            )
    print_success(f"Pushed {image_name}:{tag}")
