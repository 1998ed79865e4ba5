"""OS package inspection inside a published image.

The released image is started as a short-lived container whose entrypoint
is ``sleep``. The package manager is detected by probing for its binary and
then asked which installed packages have newer versions available. The
container removes itself once ``sleep`` returns, so nothing has to clean it
up on failure.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import List, NamedTuple, Optional, Tuple, Type

from docker.errors import DockerException

from imagekeeper.constants import PACKAGE_PROBE_LIFETIME
from imagekeeper.exceptions import ImageKeeperError, ScrapeFailed, UnsupportedPackageManager
from imagekeeper.utils.console import print_warning
from imagekeeper.utils.logger import get_logger

logger = get_logger("packages")

__all__ = [
    "AlpinePackageManager",
    "DebianPackageManager",
    "PACKAGE_MANAGERS",
    "PackageManager",
    "UpgradeablePackage",
    "detect_package_manager",
    "start_probe_container",
]

# name is everything before the last "-<digit>"
_APK_PACKAGE_RE = re.compile(r"^(?P<name>.+)-(?P<version>\d.*)$")


class UpgradeablePackage(NamedTuple):
    name: str
    current_version: str
    new_version: str


class PackageManager(ABC):
    """A package manager that can list pending upgrades in a container."""

    #: Short name used in log messages.
    name: str = ""
    #: Binary whose presence identifies the package manager.
    probe_path: str = ""
    #: Human readable upgrade command expected in the manifest.
    upgrade_command: str = ""
    #: Regex matching that command in the manifest.
    upgrade_pattern: str = ""

    @abstractmethod
    def upgradeable_lines(self, container) -> List[str]:
        """Raw output lines describing one pending upgrade each."""

    @staticmethod
    @abstractmethod
    def parse_line(line: str) -> Optional[UpgradeablePackage]:
        """Parse one line of :meth:`upgradeable_lines` output."""

    def list_upgradeable(self, container) -> List[UpgradeablePackage]:
        packages = []
        for line in self.upgradeable_lines(container):
            package = self.parse_line(line)
            if package is None:
                print_warning(f"Skipping unparsable {self.name} line: {line}")
                continue
            packages.append(package)
        logger.debug("%d upgradeable %s package(s)", len(packages), self.name)
        return packages

    @staticmethod
    def run(container, *command: str) -> str:
        """Run ``command`` as root in ``container`` and return its stdout.

        Raises:
            ScrapeFailed: The command exited non-zero or could not be run.
        """
        label = " ".join(command)
        try:
            result = container.exec_run(list(command), user="root", demux=True)
        except DockerException as exc:
            logger.debug("exec %r failed: %s", label, exc)
            raise ScrapeFailed(f'"{label}"', "output") from exc

        stdout, stderr = result.output or (None, None)
        if result.exit_code != 0:
            logger.debug(
                "%r exited with %s: %s",
                label,
                result.exit_code,
                (stderr or b"").decode(errors="replace").strip(),
            )
            raise ScrapeFailed(f'"{label}"', "output")
        return (stdout or b"").decode(errors="replace")


class AlpinePackageManager(PackageManager):
    name = "apk"
    probe_path = "/sbin/apk"
    upgrade_command = "apk upgrade"
    upgrade_pattern = r"apk upgrade"

    def upgradeable_lines(self, container) -> List[str]:
        self.run(container, "apk", "update")
        output = self.run(container, "apk", "list", "--upgradeable")
        return [line for line in output.splitlines() if "upgradable from:" in line]

    @staticmethod
    def parse_line(line: str) -> Optional[UpgradeablePackage]:
        """Parse ``<pkg>-<new> <arch> {<origin>} (<license>) [upgradable from: <pkg>-<cur>]``."""
        fields = line.split()
        if len(fields) < 2 or "upgradable from:" not in line:
            return None

        new_match = _APK_PACKAGE_RE.match(fields[0])
        current_match = _APK_PACKAGE_RE.match(fields[-1].rstrip("]"))
        if new_match is None or current_match is None:
            return None

        return UpgradeablePackage(
            new_match.group("name"),
            current_match.group("version"),
            new_match.group("version"),
        )


class DebianPackageManager(PackageManager):
    name = "apt"
    probe_path = "/bin/apt-get"
    upgrade_command = "apt full-upgrade"
    upgrade_pattern = r"apt(?:-get)? full-upgrade"

    def upgradeable_lines(self, container) -> List[str]:
        self.run(container, "apt-get", "update")
        output = self.run(
            container,
            "apt-get",
            "-o",
            "APT::Get::Show-User-Simulation-Note=false",
            "--simulate",
            "full-upgrade",
        )
        lines = []
        for line in output.splitlines():
            if not line.startswith("Inst "):
                continue
            if " [" not in line.split(" (", 1)[0]:
                logger.debug("Skipping new install: %s", line)
                continue
            lines.append(line)
        return lines

    @staticmethod
    def parse_line(line: str) -> Optional[UpgradeablePackage]:
        """Parse ``Inst <pkg> [<cur>] (<new> <suite> [<arch>])``.

        Lines without a ``[<cur>]`` field are new installs, not upgrades.
        """
        fields = line.split()
        if len(fields) < 4 or fields[0] != "Inst":
            return None
        if not (fields[2].startswith("[") and fields[2].endswith("]")):
            return None
        if not fields[3].startswith("("):
            return None

        return UpgradeablePackage(fields[1], fields[2][1:-1], fields[3][1:])


#: Probe order; the first manager whose binary exists wins.
PACKAGE_MANAGERS: Tuple[Type[PackageManager], ...] = (
    AlpinePackageManager,
    DebianPackageManager,
)


def detect_package_manager(container, image: str) -> PackageManager:
    """Return the package manager installed in ``container``.

    Raises:
        UnsupportedPackageManager: None of :data:`PACKAGE_MANAGERS` exists.
        ScrapeFailed: The docker daemon failed to run a probe command.
    """
    for manager_class in PACKAGE_MANAGERS:
        command = ["test", "-e", manager_class.probe_path]
        try:
            result = container.exec_run(command, user="root")
        except DockerException as exc:
            label = " ".join(command)
            logger.debug("exec %r failed: %s", label, exc)
            raise ScrapeFailed(f'"{label}"', "output") from exc
        if result.exit_code == 0:
            logger.debug("Detected %s in %s", manager_class.name, image)
            return manager_class()
    raise UnsupportedPackageManager(image)


def start_probe_container(client, image: str):
    """Start a self-removing container of ``image`` that idles briefly."""
    logger.info("Starting probe container from %s", image)
    try:
        return client.containers.run(
            image,
            entrypoint="sleep",
            command=str(PACKAGE_PROBE_LIFETIME),
            detach=True,
            remove=True,
        )
    except DockerException as exc:
        raise ImageKeeperError(
            f'Failed to start a container from "{image}"',
            {"error": str(exc)},
        ) from exc
