"""Docker engine access."""

from __future__ import annotations

import docker
from docker.errors import DockerException

from imagekeeper.exceptions import DockerNotReachable
from imagekeeper.utils.logger import get_logger

logger = get_logger("docker")


def get_docker_client() -> docker.DockerClient:
    """Connect to the Docker daemon from the environment and ping it.

    Raises:
        DockerNotReachable: The daemon is not running or access is denied.
    """
    try:
        client = docker.from_env()
        client.ping()
    except DockerException as exc:
        logger.debug("Docker daemon check failed: %s", exc)
        raise DockerNotReachable(
            "Docker daemon is not running or you have insufficient permissions!"
        ) from exc

    logger.debug("Docker daemon reachable")
    return client
