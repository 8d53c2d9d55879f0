"""Resource configuration for catalog scoring and ensemble training.

Chooses how many worker threads score catalog chunks, how many rows go in
a chunk and how many parallel jobs a bagged ensemble may use, from the
machine's CPU count and available memory.

Usage:
    from resource_config import get_config, ResourceProfile

    # Auto-detected settings (SG_RESOURCE_PROFILE=low|medium|high overrides)
    config = get_config()

    # Or pin a profile
    config = get_config(ResourceProfile.LOW)

    n_workers = config.workers_for(n_chunks)
    chunk_size = config.chunk_size
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import psutil

PROFILE_ENV = "SG_RESOURCE_PROFILE"

_GB = 1024 ** 3


class ResourceProfile(Enum):
    """Hardware classes the pipelines are tuned for."""
    LOW = "low"           # < 4 GB free or <= 2 cores
    MEDIUM = "medium"     # < 8 GB free or <= 4 cores
    HIGH = "high"         # everything bigger
    AUTO = "auto"         # decide from the running machine


@dataclass(frozen=True)
class ResourceConfig:
    """Parallelism and memory settings.

    Attributes:
        n_workers: Worker threads scoring catalog chunks
        chunk_size: Catalog rows scored per chunk (bounds peak memory)
        n_jobs: Parallel jobs for bagged ensembles
        profile: Profile these settings belong to
    """
    n_workers: int
    chunk_size: int
    n_jobs: int
    profile: ResourceProfile

    def workers_for(self, n_chunks: int) -> int:
        """Worker threads worth starting for ``n_chunks`` chunks."""
        return max(1, min(self.n_workers, n_chunks))

    def __str__(self) -> str:
        return (
            f"ResourceConfig(profile={self.profile.value}, "
            f"workers={self.n_workers}, chunk={self.chunk_size}, jobs={self.n_jobs})"
        )


def _cpu_count() -> int:
    return os.cpu_count() or 2


def _available_memory_gb() -> Optional[float]:
    try:
        return psutil.virtual_memory().available / _GB
    except (OSError, RuntimeError):
        return None


def select_profile(cpu_count: int, memory_gb: Optional[float]) -> ResourceProfile:
    """Map machine size to a profile; unknown memory is judged on cores alone."""
    if cpu_count <= 2 or (memory_gb is not None and memory_gb < 4):
        return ResourceProfile.LOW
    if cpu_count <= 4 or (memory_gb is not None and memory_gb < 8):
        return ResourceProfile.MEDIUM
    return ResourceProfile.HIGH


def build_config(profile: ResourceProfile, cpu_count: Optional[int] = None) -> ResourceConfig:
    """Settings for a concrete (non-AUTO) profile.

    HIGH scales with the core count and leaves one core for the main thread.
    """
    if profile == ResourceProfile.LOW:
        return ResourceConfig(n_workers=1, chunk_size=5_000, n_jobs=1, profile=profile)
    if profile == ResourceProfile.MEDIUM:
        return ResourceConfig(n_workers=2, chunk_size=20_000, n_jobs=2, profile=profile)
    if profile == ResourceProfile.HIGH:
        n_workers = max(4, (cpu_count or _cpu_count()) - 1)
        return ResourceConfig(
            n_workers=n_workers, chunk_size=50_000, n_jobs=n_workers, profile=profile
        )
    raise ValueError(f"No settings for profile {profile!r}")


def _resolve(profile: Optional[ResourceProfile]) -> ResourceProfile:
    if profile is not None and profile != ResourceProfile.AUTO:
        return profile
    requested = os.environ.get(PROFILE_ENV, "").strip().lower()
    if requested in ("low", "medium", "high"):
        return ResourceProfile(requested)
    return select_profile(_cpu_count(), _available_memory_gb())


_cached_config: Optional[ResourceConfig] = None


def get_config(profile: Optional[ResourceProfile] = None) -> ResourceConfig:
    """Get resource settings, optionally for a given profile.

    Args:
        profile: Profile to use. None or AUTO consults SG_RESOURCE_PROFILE,
            then the running machine.

    Returns:
        ResourceConfig; repeated calls for the same profile return the
        same object.
    """
    global _cached_config

    resolved = _resolve(profile)
    if _cached_config is None or _cached_config.profile != resolved:
        _cached_config = build_config(resolved)
    return _cached_config


def print_system_info() -> None:
    """Print detected system information and the profile it maps to."""
    cpu_count = _cpu_count()
    avail_mem = _available_memory_gb()

    print("System Resource Detection:")
    print(f"  CPU cores: {cpu_count}")
    print(f"  Total memory: {psutil.virtual_memory().total / _GB:.1f} GB")
    if avail_mem is not None:
        print(f"  Available memory: {avail_mem:.1f} GB")
    print(f"  Recommended profile: {select_profile(cpu_count, avail_mem).value}")
    print()


if __name__ == "__main__":
    print_system_info()
    print(f"Selected config: {get_config()}")
