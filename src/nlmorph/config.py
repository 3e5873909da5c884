# src/nlmorph/config.py
from __future__ import annotations

# General imports (stdlib)
import math
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Tuple

# Local imports
from .exceptions import ConfigError, DataNotFound
from .swc import DANGLING_POLICIES

INPUT_EXTENSIONS = (".xml", ".swc")
OUTPUT_FORMATS = ("swc", "nlxml")


@dataclass(frozen=True)
class Pathing:
    directory: Path = Path("data")                                               # Parent directory containing all reconstructions
    input_extension: str = ".xml"                                                # Input file extension (.xml | .swc)
    output_directory_name: str = "Converted"                                     # Output folder created under directory


@dataclass(frozen=True)
class Processing:
    output_format: str = "swc"                                                   # swc | nlxml
    simplify: bool = True                                                        # Collapse degree-2 nodes before writing
    apply_calibration: bool = False                                              # Bake image calibration into point coordinates
    to_image_space: bool = False                                                 # Map points into image space with the inverse calibration
    flip_z: bool = False                                                         # Mirror z in either calibration direction
    include_images: bool = False                                                 # Write the <images> block in NLXML output
    overwrite: bool = True                                                       # Rewrite outputs that already exist


@dataclass(frozen=True)
class Parameters:
    dangling_parents: str = "error"                                              # SWC records with missing parents: error | root
    translate: Tuple[float, float, float] = (0.0, 0.0, 0.0)                      # User offset applied after calibration
    scale: Tuple[float, float, float] = (1.0, 1.0, 1.0)                          # User scale applied after calibration (before offset)


@dataclass(frozen=True)
class Config:
    pathing: Pathing = Pathing()                                                 # File/directory locations
    processing: Processing = Processing()                                        # Conversion toggles
    parameters: Parameters = Parameters()                                        # Import policies


def make_config(**overrides: Dict[str, Any]) -> Config:
    """
    Build and validate a Config object for a conversion run.

    Use:
        Construct a Config with defaults, apply per-section overrides given as
        keyword dicts (e.g. `make_config(pathing={"directory": tmp})`), then
        validate and normalize it.

    Returns:
        Config: Fully-initialized configuration.

    Raises:
        ConfigError: If a section or field name is unknown, a format or
            policy value is not supported, the calibration toggles conflict,
            or the user translate/scale vectors are malformed.
        DataNotFound: If cfg.pathing.directory does not exist or is not a directory.
    """
    cfg = Config()

    # Apply overrides section by section
    for section, values in overrides.items():
        if not hasattr(cfg, section):
            raise ConfigError(f"Config: unknown section {section!r}")
        try:
            cfg = replace(cfg, **{section: replace(getattr(cfg, section), **values)})
        except TypeError as e:
            raise ConfigError(f"Config: invalid field in section {section!r}: {e}") from e

    # Validate that a directory is configured and exists on disk
    if not str(cfg.pathing.directory).strip():
        raise ConfigError("Config: 'pathing.directory' is empty.")
    directory = Path(cfg.pathing.directory)
    if not directory.is_dir():
        raise DataNotFound(f"directory not found: {directory}")

    # Normalize the input extension so it always carries a leading dot
    ext = str(cfg.pathing.input_extension).strip().lower()
    if ext and not ext.startswith("."):
        ext = "." + ext
    if ext not in INPUT_EXTENSIONS:
        raise ConfigError(
            f"Config: 'pathing.input_extension' must be one of {INPUT_EXTENSIONS}, got {ext!r}."
        )
    cfg = replace(cfg, pathing=replace(cfg.pathing, directory=directory, input_extension=ext))

    if not str(cfg.pathing.output_directory_name).strip():
        raise ConfigError("Config: 'pathing.output_directory_name' is empty.")

    # Validate output format and import policy
    if cfg.processing.output_format not in OUTPUT_FORMATS:
        raise ConfigError(
            f"Config: 'processing.output_format' must be one of {OUTPUT_FORMATS}, "
            f"got {cfg.processing.output_format!r}."
        )
    if cfg.parameters.dangling_parents not in DANGLING_POLICIES:
        raise ConfigError(
            f"Config: 'parameters.dangling_parents' must be one of {DANGLING_POLICIES}, "
            f"got {cfg.parameters.dangling_parents!r}."
        )

    # Images only exist in NLXML output
    if cfg.processing.include_images and cfg.processing.output_format != "nlxml":
        cfg = replace(cfg, processing=replace(cfg.processing, include_images=False))

    # Only one calibration direction per run
    if cfg.processing.apply_calibration and cfg.processing.to_image_space:
        raise ConfigError(
            "Config: 'processing.apply_calibration' and 'processing.to_image_space' "
            "are mutually exclusive."
        )

    # Flipping z only means something when a calibration is applied
    if cfg.processing.flip_z and not (cfg.processing.apply_calibration or cfg.processing.to_image_space):
        raise ConfigError(
            "Config: 'processing.flip_z' is True but no calibration is applied. "
            "Enable apply_calibration or to_image_space, or disable flip_z."
        )

    # User transform: three finite numbers each, normalized to float tuples
    vectors = {}
    for name in ("translate", "scale"):
        raw = getattr(cfg.parameters, name)
        try:
            vec = tuple(float(v) for v in raw)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Config: 'parameters.{name}' must be three numbers, got {raw!r}.") from e
        if len(vec) != 3 or not all(math.isfinite(v) for v in vec):
            raise ConfigError(f"Config: 'parameters.{name}' must be three finite numbers, got {raw!r}.")
        vectors[name] = vec
    cfg = replace(cfg, parameters=replace(cfg.parameters, **vectors))

    return cfg
