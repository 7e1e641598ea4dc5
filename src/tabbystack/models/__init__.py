"""Model artifact acquisition.

Example:
    >>> from tabbystack.models import HuggingFaceCliDownloader, ModelAcquisitionGate
    >>> gate = ModelAcquisitionGate(Path("models"), HuggingFaceCliDownloader())
    >>> gate.ensure_downloaded("bartowski/Llama-3.2-3B-Instruct-exl2", "6_5").path
    PosixPath('models/Llama-3.2-3B-Instruct-exl2_6_5')
"""

from ._artifact import DEFAULT_MARKER, ModelArtifact, model_dir_name
from ._download import Downloader, HuggingFaceCliDownloader
from ._gate import ModelAcquisitionGate

__all__ = [
    "DEFAULT_MARKER",
    "Downloader",
    "HuggingFaceCliDownloader",
    "ModelAcquisitionGate",
    "ModelArtifact",
    "model_dir_name",
]
