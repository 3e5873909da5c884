# src/nlmorph/core.py
from __future__ import annotations

# General imports (stdlib)
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

# Third-party imports
from tqdm import tqdm

# Local imports
from .config import Config
from .exceptions import NlmorphError
from .io import discover_files, read_nlxml, read_swc, write_nlxml, write_swc
from .model import NeuronData
from .topology import simplify
from .transform import apply_calibration, apply_inverse_calibration, apply_matrix, user_matrix


@dataclass
class ConversionReport:
    """Outcome of one pipeline run."""
    converted: List[Path] = field(default_factory=list)
    skipped: List[Path] = field(default_factory=list)
    failed: List[Tuple[Path, str]] = field(default_factory=list)


@contextmanager
def timed(label: str):
    """
    Context manager that prints a timing log when the block exits.

    Args:
        label (str): Label printed in the log line.
    """
    t0 = time.time()
    try:
        yield
    finally:
        # Always log elapsed time, even if an exception occurs
        dt_ms = (time.time() - t0) * 1000.0
        print(f"[ok] {label} ({dt_ms:,.0f} ms)")


class Converter:
    """Encapsulates the per-file conversion logic."""

    def __init__(self, cfg: Config) -> None:
        """
        Args:
            cfg (Config): Global configuration controlling formats and
                processing toggles.
        """
        self.cfg = cfg

    def read(self, path: Path) -> NeuronData:
        if path.suffix.lower() == ".swc":
            return read_swc(path, dangling=self.cfg.parameters.dangling_parents)
        return read_nlxml(path)

    def process(self, data: NeuronData) -> NeuronData:
        """
        Apply the configured in-memory passes between import and export.

        Use:
            Optionally collapse degree-2 nodes, then optionally apply the
            image calibration (forward into stage space, or inverse into image
            space), then the user Translate @ Scale. All passes work in place,
            so an inverse-calibrated export gets T @ S @ inv(calibration).
        """
        proc, params = self.cfg.processing, self.cfg.parameters
        if proc.simplify:
            simplify(data)
        if proc.apply_calibration:
            apply_calibration(data, flip_z=proc.flip_z)
        elif proc.to_image_space:
            apply_inverse_calibration(data, flip_z=proc.flip_z)
        if params.translate != (0.0, 0.0, 0.0) or params.scale != (1.0, 1.0, 1.0):
            apply_matrix(data, user_matrix(params.translate, params.scale))
        return data

    def write(self, data: NeuronData, out_path: Path, source: Path) -> None:
        out_path.parent.mkdir(parents=True, exist_ok=True)
        if self.cfg.processing.output_format == "swc":
            # Only NLXML sources get the provenance header
            write_swc(data, out_path, source=None if source.suffix.lower() == ".swc" else source.name)
        else:
            write_nlxml(data, out_path, include_images=self.cfg.processing.include_images)

    def convert(self, path: Path, out_path: Path) -> NeuronData:
        """Read, process and write one file; returns the written model."""
        data = self.process(self.read(path))
        self.write(data, out_path, source=path)
        return data


class ConversionPipeline:
    """
    Top-level batch conversion orchestration.

    Use:
        Discover every input file under cfg.pathing.directory, convert each
        one, and mirror the relative folder layout under
        cfg.pathing.directory / cfg.pathing.output_directory_name.
    """

    def __init__(self, cfg: Config) -> None:
        self.cfg = cfg
        self.converter = Converter(cfg)

    @property
    def output_root(self) -> Path:
        return Path(self.cfg.pathing.directory) / self.cfg.pathing.output_directory_name

    def output_path(self, path: Path) -> Path:
        """Map an input path to its output path (same relative folder, new suffix)."""
        rel = path.relative_to(self.cfg.pathing.directory)
        suffix = ".swc" if self.cfg.processing.output_format == "swc" else ".xml"
        return (self.output_root / rel).with_suffix(suffix)

    def discover(self) -> List[Path]:
        """Input files, excluding anything already inside the output folder."""
        files = discover_files(self.cfg.pathing.directory, self.cfg.pathing.input_extension)
        out_root = self.output_root
        return [f for f in files if out_root not in f.parents]

    def run(self, progress_cb: Optional[Callable[[int, int], None]] = None) -> ConversionReport:
        """
        Convert every discovered file.

        Use:
            A file that fails to import or process is recorded in the report
            and the batch continues; each file is still all-or-nothing, so no
            partial output is written for it. OS errors propagate.

        Args:
            progress_cb (Optional[Callable[[int, int], None]]): Optional callback
                receiving (processed, total) after each file.

        Returns:
            ConversionReport: Converted, skipped and failed files.

        Raises:
            DataNotFound: If no input files are found.
        """
        report = ConversionReport()

        with timed("Discovered input files"):
            files = self.discover()

        with timed(f"Converted {len(files)} file(s)"):
            with tqdm(total=len(files), desc="Converting", unit="file", smoothing=0) as pbar:
                for i, path in enumerate(files, start=1):
                    out_path = self.output_path(path)

                    # Skip existing outputs unless overwriting
                    if out_path.exists() and not self.cfg.processing.overwrite:
                        report.skipped.append(path)
                    else:
                        try:
                            self.converter.convert(path, out_path)
                            report.converted.append(path)
                        except NlmorphError as e:
                            report.failed.append((path, str(e)))
                            tqdm.write(f"[failed] {path}: {e}")

                    pbar.update(1)
                    if progress_cb is not None:
                        progress_cb(i, len(files))

        return report
