"""
streamgen :: HuggingFace Hub Repository

Repo implementation that fetches checkpoint files from the HuggingFace
Hub (or its local cache) with huggingface_hub.hf_hub_download.
Download errors from huggingface_hub are not wrapped, except that a
checkpoint with neither model.safetensors nor a shard index raises
WeightLoadError.

INL - 2025
"""

from pathlib import Path
from typing import List, Optional

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import EntryNotFoundError

from streamgen.core.errors import WeightLoadError
from streamgen.core.logging import get_logger
from streamgen.core.repo import Repo, SAFETENSORS_INDEX, SINGLE_SAFETENSORS, read_safetensors_index_file

logger = get_logger("streamgen.hub")


class HubRepo(Repo):
    """Model repository on the HuggingFace Hub."""

    def __init__(
        self,
        model_id: str,
        revision: Optional[str] = None,
        cache_dir: Optional[str] = None,
        token: Optional[str] = None,
    ):
        self._model_id = model_id
        self.revision = revision or "main"
        self.cache_dir = cache_dir
        self.token = token

    @staticmethod
    def from_pretrained(
        model_id: str,
        revision: Optional[str] = None,
        cache_dir: Optional[str] = None,
        token: Optional[str] = None,
    ) -> "HubRepo":
        return HubRepo(model_id, revision=revision, cache_dir=cache_dir, token=token)

    @property
    def model_id(self) -> str:
        return self._model_id

    def get(self, filename: str) -> Path:
        """Download (or reuse the cached copy of) one file."""
        path = hf_hub_download(
            repo_id=self._model_id,
            filename=filename,
            revision=self.revision,
            cache_dir=self.cache_dir,
            token=self.token,
        )
        logger.debug(f"{self._model_id}: {filename} -> {path}")
        return Path(path)

    def download_safetensors(self, json_file: str) -> List[Path]:
        """Fetch the shard index, then each unique shard it names."""
        index_path = self.get(json_file)
        shard_names = read_safetensors_index_file(index_path)
        return [self.get(name) for name in sorted(shard_names)]

    def safetensors_files(self) -> List[Path]:
        try:
            return [self.get(SINGLE_SAFETENSORS)]
        except EntryNotFoundError:
            pass
        try:
            return self.download_safetensors(SAFETENSORS_INDEX)
        except EntryNotFoundError as e:
            raise WeightLoadError(f"no safetensors weights in {self._model_id}: {e}") from e
