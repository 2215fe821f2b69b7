"""Graphics card detection and driver package selection."""

import logging
import re
import subprocess
from enum import Enum
from typing import Dict, List, Optional

from debian_workstation.utils import run_command

logger = logging.getLogger("debian_workstation")

_DISPLAY_RE = re.compile(
    r"\b(?:vga compatible|3d|display) controller\b", re.IGNORECASE
)


class GpuVendor(Enum):
    """Closed set of vendors the setup knows drivers for."""

    NVIDIA = "nvidia"
    AMD = "amd"
    OTHER = "other"


DRIVER_PACKAGES: Dict[GpuVendor, List[str]] = {
    GpuVendor.NVIDIA: [
        "nvidia-detect",
        "nvidia-driver",
        "nvidia-smi",
        "mesa-vulkan-drivers",
        "libglx-mesa0:i386",
        "mesa-vulkan-drivers:i386",
        "libgl1-mesa-dri:i386",
    ],
    GpuVendor.AMD: [
        "firmware-amd-graphics",
        "libgl1-mesa-dri",
        "libvulkan1",
        "vulkan-tools",
        "vulkan-validationlayers",
        "libdrm-amdgpu1",
        "libglx-mesa0",
        "mesa-vulkan-drivers",
        "libglx-mesa0:i386",
        "mesa-vulkan-drivers:i386",
        "libgl1-mesa-dri:i386",
        "radeontop",
        "fancontrol",
    ],
    GpuVendor.OTHER: [],
}


def display_devices(lspci_output: str) -> List[str]:
    """Lines of `lspci -nn` output that describe display controllers."""
    return [line for line in lspci_output.splitlines() if _DISPLAY_RE.search(line)]


def classify_gpu(lspci_output: str) -> GpuVendor:
    """
    Pick the vendor from `lspci -nn` output. NVIDIA wins on hybrid machines.
    """
    devices = " ".join(display_devices(lspci_output)).lower()
    if "nvidia" in devices:
        return GpuVendor.NVIDIA
    if re.search(r"\bamd\b|\bati\b|radeon", devices):
        return GpuVendor.AMD
    return GpuVendor.OTHER


def detect_gpu_vendor(lspci_output: Optional[str] = None) -> GpuVendor:
    if lspci_output is None:
        try:
            result = run_command(["lspci", "-nn"], capture_output=True, text=True)
            lspci_output = result.stdout
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not query PCI devices: {e}")
            return GpuVendor.OTHER
    vendor = classify_gpu(lspci_output)
    logger.info(f"Detected graphics vendor: {vendor.value}")
    return vendor
