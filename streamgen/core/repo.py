"""
streamgen :: Model Repository

Resolve the files of a model checkpoint:

    config.json                      model config
    generation_config.json           GenerationConfig
    tokenizer.json                   HuggingFace fast tokenizer
    tokenizer_config.json            chat_template lives here
    model.safetensors                single-file weights, or
    model.safetensors.index.json     shard index ("weight_map")
    pytorch_model.bin                legacy weights

Repo is the interface; LocalRepo reads a directory. HubRepo
(streamgen.core.hub) downloads from the HuggingFace Hub.

INL - 2025
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List, Optional, Set, Union

from streamgen.core.errors import ConfigError, WeightLoadError
from streamgen.core.logging import get_logger

logger = get_logger("streamgen.repo")

SINGLE_SAFETENSORS = "model.safetensors"
SAFETENSORS_INDEX = "model.safetensors.index.json"


class Repo(ABC):
    """A model repository: maps well-known file names to local paths."""

    @property
    @abstractmethod
    def model_id(self) -> str:
        ...

    @abstractmethod
    def get(self, filename: str) -> Path:
        """Local path of one repository file."""

    @abstractmethod
    def safetensors_files(self) -> List[Path]:
        """All weight files, shards deduplicated."""

    def tokenizer_config_file(self) -> Path:
        return self.get("tokenizer_config.json")

    def tokenizer_file(self) -> Path:
        return self.get("tokenizer.json")

    def config_file(self) -> Path:
        return self.get("config.json")

    def pytorch_model_file(self) -> Path:
        return self.get("pytorch_model.bin")

    def generation_config_file(self) -> Path:
        return self.get("generation_config.json")

    # =====================================================================
    # Loaders built on the file accessors
    # =====================================================================

    def config(self, config_cls: Optional[Any] = None) -> Any:
        """
        Model config.

        Returns the parsed config.json dict, or `config_cls.from_json(path)`
        when a config class is given.
        """
        path = self.config_file()
        if config_cls is not None:
            return config_cls.from_json(str(path))
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read model config {path}: {e}") from e

    def generation_config(self):
        from streamgen.core.generation_config import GenerationConfig

        return GenerationConfig.from_file(self.generation_config_file())

    def load_tokenizer(self):
        from streamgen.core.tokenizer import HFTokenizer

        return HFTokenizer.from_file(self.tokenizer_file())

    def load_chat_template(self):
        from streamgen.core.chat_template import ChatTemplate

        return ChatTemplate.from_tokenizer_config(self.tokenizer_config_file())


class LocalRepo(Repo):
    """Repository backed by a local checkpoint directory."""

    def __init__(self, model_id: str, path: Union[str, Path]):
        self._model_id = model_id
        self.path = Path(path)

    @property
    def model_id(self) -> str:
        return self._model_id

    def get(self, filename: str) -> Path:
        return self.path / filename

    def safetensors_files(self) -> List[Path]:
        single = self.get(SINGLE_SAFETENSORS)
        if single.exists():
            return [single]

        index_file = self.get(SAFETENSORS_INDEX)
        if not index_file.exists():
            raise WeightLoadError(f"no safetensors weights in {self.path}")
        return load_safetensors(self.path, SAFETENSORS_INDEX)


# =========================================================================
# Shard index
# =========================================================================

def read_safetensors_index_file(json_file: Union[str, Path]) -> Set[str]:
    """
    Read a shard index and return the set of shard file names.

    Many tensors share one shard, so the weight_map values are
    deduplicated.
    """
    try:
        with open(json_file, "r", encoding="utf-8") as f:
            index = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot read shard index {json_file}: {e}") from e

    if not isinstance(index, dict) or "weight_map" not in index:
        raise ConfigError(f"no weight map in {json_file}")
    weight_map = index["weight_map"]
    if not isinstance(weight_map, dict):
        raise ConfigError(f"weight map in {json_file} is not a map")

    return {name for name in weight_map.values() if isinstance(name, str)}


def load_safetensors(path: Union[str, Path], json_file: Union[str, Path]) -> List[Path]:
    """Resolve every unique shard of an index to a path under `path`."""
    path = Path(path)
    shard_names = read_safetensors_index_file(path / json_file)
    files = [path / name for name in sorted(shard_names)]
    logger.debug(f"resolved {len(files)} shard files from {json_file}")
    return files
