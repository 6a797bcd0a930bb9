"""Shared fixtures: a scripted host platform and operator."""

import io
from collections.abc import Iterable
from pathlib import Path

import pytest
from rich.console import Console

from sdflash.flash.device import first_partition
from sdflash.types import MountEntry, UnmountReport


class FakeHost:
    """In-memory HostPlatform recording every call."""

    name = "Fake"
    required_tools: tuple[str, ...] = ()

    def __init__(
        self,
        mounts: Iterable[MountEntry] = (),
        mount_root: Path = Path("/media"),
        failing_unmounts: Iterable[str] = (),
    ) -> None:
        self.mounts = list(mounts)
        self.mount_root = mount_root
        self.failing_unmounts = set(failing_unmounts)
        self.calls: list[tuple] = []

    def sync(self) -> None:
        self.calls.append(("sync",))

    def mount_table(self) -> list[MountEntry]:
        return list(self.mounts)

    def disk_usage(self) -> str:
        return "Filesystem Size Used Avail Use% Mounted on"

    def unmount(self, target: str) -> UnmountReport:
        self.calls.append(("unmount", target))
        if target in self.failing_unmounts:
            return UnmountReport(target=target, returncode=1, message="target is busy")
        self.mounts = [m for m in self.mounts if m.mount_point != target]
        return UnmountReport(target=target, returncode=0)

    def mount(self, partition: str, mount_point: Path) -> None:
        self.calls.append(("mount", partition, str(mount_point)))
        mount_point.mkdir(parents=True, exist_ok=True)
        self.mounts.append(MountEntry(partition, str(mount_point)))

    def raw_device(self, device: str) -> str:
        return device

    def first_partition(self, device: str) -> str:
        return first_partition(device)

    def ops(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


def scripted(*answers: str):
    """Input source replaying fixed answers; records the prompts it saw."""
    remaining = list(answers)
    prompts: list[str] = []

    def ask(prompt: str) -> str:
        prompts.append(prompt)
        if not remaining:
            raise AssertionError(f"Unexpected prompt: {prompt!r}")
        return remaining.pop(0)

    ask.prompts = prompts  # type: ignore[attr-defined]
    return ask


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def quiet_console() -> Console:
    return Console(file=io.StringIO(), force_terminal=False, width=120)
